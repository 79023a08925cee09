import logging
from datetime import datetime
from typing import List, Optional, Tuple

from rq import Queue, Retry
from rq.exceptions import NoSuchJobError
from rq.job import Job, JobStatus
from rq.registry import clean_registries

from app.core.constants import GRADING_JOB_PREFIX, JobStateEnum
from app.schemas.grading_job import GradingJob, GradingJobData

logger = logging.getLogger(__name__)

GRADE_ATTEMPT_TASK = "app.jobs.grading.grade_attempt"

PENDING_STATUSES = frozenset({
    JobStatus.QUEUED.value,
    JobStatus.DEFERRED.value,
    JobStatus.SCHEDULED.value,
    JobStatus.STARTED.value,
})

JOB_STATES = {
    JobStatus.QUEUED.value: JobStateEnum.QUEUED,
    JobStatus.DEFERRED.value: JobStateEnum.QUEUED,
    JobStatus.SCHEDULED.value: JobStateEnum.QUEUED,
    JobStatus.STARTED.value: JobStateEnum.ACTIVE,
    JobStatus.FINISHED.value: JobStateEnum.COMPLETED,
    JobStatus.FAILED.value: JobStateEnum.FAILED,
    JobStatus.STOPPED.value: JobStateEnum.FAILED,
    JobStatus.CANCELED.value: JobStateEnum.FAILED,
}


def _status_of(job: Job) -> Optional[str]:
    status = job.get_status()
    return getattr(status, "value", status)


class GradingQueue:
    """rq-backed queue of "grade this attempt" jobs, one job id per attempt."""

    def __init__(
        self,
        queue: Queue,
        *,
        max_attempts: int = 3,
        backoff_delay: int = 2,
        job_timeout: int = 30,
        completed_ttl: int = 24 * 3600,
        failed_ttl: int = 7 * 24 * 3600,
        enqueue_lock_ttl: int = 10,
    ):
        self.queue = queue
        self.connection = queue.connection
        self.max_attempts = max_attempts
        self.backoff_delay = backoff_delay
        self.job_timeout = job_timeout
        self.completed_ttl = completed_ttl
        self.failed_ttl = failed_ttl
        self.enqueue_lock_ttl = enqueue_lock_ttl

    @staticmethod
    def job_id_for(attempt_id: int) -> str:
        return f"{GRADING_JOB_PREFIX}{attempt_id}"

    def _retry(self) -> Optional[Retry]:
        retries = self.max_attempts - 1
        if retries < 1:
            return None
        return Retry(max=retries, interval=[self.backoff_delay * 2 ** i for i in range(retries)])

    def _fetch(self, job_id: str) -> Optional[Job]:
        try:
            return Job.fetch(job_id, connection=self.connection)
        except NoSuchJobError:
            return None

    def _to_schema(self, job: Job) -> GradingJob:
        attempt_id, user_id, test_id = job.args
        meta = job.meta or {}
        state = JOB_STATES.get(_status_of(job), JobStateEnum.QUEUED)
        return GradingJob(
            id=job.id,
            data=GradingJobData(attempt_id=attempt_id, user_id=user_id, test_id=test_id),
            state=state,
            progress=meta.get("progress", 0),
            attempts_made=meta.get("attempts_made", 0),
            max_attempts=self.max_attempts,
            result=meta.get("result") if state == JobStateEnum.COMPLETED else None,
            failed_reason=meta.get("failed_reason"),
            created_at=job.created_at,
            started_at=job.started_at,
            ended_at=job.ended_at,
        )

    def enqueue(self, attempt_id: int, user_id: str, test_id: int) -> Tuple[Optional[GradingJob], bool]:
        """Admits a grading job unless one for this attempt is already queued, scheduled or running.

        Returns (job, admitted). A duplicate returns the existing job and admitted=False.
        A job that already completed or failed is replaced, which is how regrades re-run.
        """
        job_id = self.job_id_for(attempt_id)
        lock_key = f"{self.queue.name}:enqueue-lock:{job_id}"
        if not self.connection.set(lock_key, "1", nx=True, ex=self.enqueue_lock_ttl):
            logger.info(f"Grading job {job_id} is being enqueued concurrently, skipping duplicate")
            return self.get_status(attempt_id), False

        try:
            existing = self._fetch(job_id)
            if existing is not None and _status_of(existing) in PENDING_STATUSES:
                logger.info(f"Grading job {job_id} already pending, skipping duplicate enqueue")
                return self._to_schema(existing), False
            if existing is not None:
                existing.delete()

            job = self.queue.enqueue(
                GRADE_ATTEMPT_TASK,
                attempt_id,
                str(user_id),
                test_id,
                job_id=job_id,
                retry=self._retry(),
                job_timeout=self.job_timeout,
                result_ttl=self.completed_ttl,
                failure_ttl=self.failed_ttl,
                meta={"progress": 0, "attempts_made": 0, "max_attempts": self.max_attempts},
            )
        finally:
            self.connection.delete(lock_key)

        logger.info(f"Enqueued grading job {job_id}")
        return self._to_schema(job), True

    def get_status(self, attempt_id: int) -> Optional[GradingJob]:
        job = self._fetch(self.job_id_for(attempt_id))
        return self._to_schema(job) if job is not None else None

    def _job_ids(self, state: JobStateEnum) -> List[str]:
        if state == JobStateEnum.QUEUED:
            return (
                self.queue.get_job_ids()
                + self.queue.scheduled_job_registry.get_job_ids()
                + self.queue.deferred_job_registry.get_job_ids()
            )
        if state == JobStateEnum.ACTIVE:
            return self.queue.started_job_registry.get_job_ids()
        if state == JobStateEnum.COMPLETED:
            return self.queue.finished_job_registry.get_job_ids()
        return self.queue.failed_job_registry.get_job_ids()

    def list_jobs(self, state: Optional[JobStateEnum] = None) -> List[GradingJob]:
        states = [state] if state else list(JobStateEnum)
        job_ids = list(dict.fromkeys(job_id for s in states for job_id in self._job_ids(s)))
        jobs = [
            self._to_schema(job)
            for job in Job.fetch_many(job_ids, connection=self.connection)
            if job is not None
        ]
        if state:
            jobs = [job for job in jobs if job.state == state]
        return sorted(jobs, key=lambda job: job.created_at or datetime.min)

    def retry_failed(self, attempt_id: int) -> Optional[GradingJob]:
        """Re-admits a job that exhausted its retries with a fresh attempt budget. None if nothing failed."""
        job = self._fetch(self.job_id_for(attempt_id))
        if job is None or _status_of(job) != JobStatus.FAILED.value:
            return None

        attempt_id, user_id, test_id = job.args
        job.delete()
        retried, _ = self.enqueue(attempt_id, user_id, test_id)
        logger.info(f"Operator retry of grading job {job.id}")
        return retried

    def recover_interrupted(self) -> int:
        """Puts jobs whose worker died mid-run back on the queue while they have attempts left.

        rq moves a started job whose worker stopped heart-beating to the failed registry. Every run
        marks itself active before scoring and records its own failure, so a failed job still
        marked active never finished its run.
        """
        clean_registries(self.queue)
        registry = self.queue.failed_job_registry
        recovered = 0
        for job in Job.fetch_many(registry.get_job_ids(), connection=self.connection):
            if job is None or job.meta.get("state") != JobStateEnum.ACTIVE.value:
                continue
            if job.meta.get("attempts_made", 0) >= self.max_attempts:
                job.meta.update({
                    "state": JobStateEnum.FAILED.value,
                    "failed_reason": "Worker stopped during the final attempt",
                })
                job.save_meta()
                logger.error(f"Grading job {job.id} was interrupted on its last attempt, leaving it failed")
                continue
            registry.requeue(job)
            recovered += 1
            logger.warning(f"Re-queued interrupted grading job {job.id}")
        return recovered

    def close(self) -> None:
        self.connection.close()
