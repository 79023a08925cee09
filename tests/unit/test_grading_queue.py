import time

import pytest
from rq.job import Job, JobStatus

from app.core.constants import AttemptStatusEnum, JobStateEnum
from app.core.queue import create_rq_queue
from app.jobs import grading as grading_jobs
from app.services.attempt_scorer import ScoreResult, attempt_scorer
from app.services.grading_queue import GradingQueue


class RecordingScorer:
    def __init__(self, fail_times: int = 0):
        self.calls = []
        self.fail_times = fail_times

    def __call__(self, db, attempt_id):
        self.calls.append(attempt_id)
        if len(self.calls) <= self.fail_times:
            raise RuntimeError("database unavailable")
        return ScoreResult(
            attempt_id=attempt_id, score=5.0, max_score=5.0, percentage=100.0,
            passed=True, status=AttemptStatusEnum.GRADED,
        )


@pytest.fixture
def scorer(monkeypatch):
    recording = RecordingScorer()
    monkeypatch.setattr(attempt_scorer, "score_attempt", recording)
    return recording


def make_queue(redis_connection, **overrides):
    options = {"backoff_delay": 0, "max_attempts": 3}
    options.update(overrides)
    return GradingQueue(create_rq_queue(redis_connection), **options)


def test_enqueue_creates_queued_job(redis_connection):
    queue = make_queue(redis_connection)
    job, admitted = queue.enqueue(42, "student-1", 7)

    assert admitted is True
    assert job.id == "grade-42"
    assert job.state == JobStateEnum.QUEUED
    assert job.data.user_id == "student-1"
    assert job.data.test_id == 7

    status = queue.get_status(42)
    assert status.state == JobStateEnum.QUEUED
    assert status.progress == 0
    assert status.attempts_made == 0


def test_duplicate_enqueue_runs_scorer_once(redis_connection, scorer, run_grading_worker):
    queue = make_queue(redis_connection)

    results = [queue.enqueue(1, "student-1", 1) for _ in range(5)]
    assert [admitted for _, admitted in results] == [True, False, False, False, False]
    assert len(queue.queue) == 1

    run_grading_worker(queue)
    assert scorer.calls == [1]

    job = queue.get_status(1)
    assert job.state == JobStateEnum.COMPLETED
    assert job.progress == 100
    assert job.attempts_made == 1
    assert job.result["score"] == 5.0


def test_enqueue_while_another_enqueue_holds_the_lock_is_absorbed(redis_connection):
    queue = make_queue(redis_connection)
    redis_connection.set(f"{queue.queue.name}:enqueue-lock:grade-2", "1")

    job, admitted = queue.enqueue(2, "student-1", 1)

    assert admitted is False
    assert job is None
    assert len(queue.queue) == 0


def test_completed_job_can_be_enqueued_again(redis_connection, scorer, run_grading_worker):
    queue = make_queue(redis_connection)

    queue.enqueue(3, "student-1", 1)
    run_grading_worker(queue)
    job, admitted = queue.enqueue(3, "student-1", 1)
    assert admitted is True
    assert job.state == JobStateEnum.QUEUED
    assert job.attempts_made == 0

    run_grading_worker(queue)
    assert scorer.calls == [3, 3]


def test_failed_job_is_retried_until_success(redis_connection, scorer, run_grading_worker):
    scorer.fail_times = 2
    queue = make_queue(redis_connection)

    queue.enqueue(5, "student-1", 1)
    run_grading_worker(queue)

    job = queue.get_status(5)
    assert scorer.calls == [5, 5, 5]
    assert job.state == JobStateEnum.COMPLETED
    assert job.attempts_made == 3
    assert job.failed_reason is None


def test_job_fails_permanently_after_max_attempts(redis_connection, scorer, run_grading_worker):
    scorer.fail_times = 10
    queue = make_queue(redis_connection)

    queue.enqueue(6, "student-1", 1)
    run_grading_worker(queue)

    job = queue.get_status(6)
    assert len(scorer.calls) == 3
    assert job.state == JobStateEnum.FAILED
    assert job.attempts_made == 3
    assert job.failed_reason == "RuntimeError: database unavailable"

    failed = queue.list_jobs(JobStateEnum.FAILED)
    assert [j.id for j in failed] == ["grade-6"]
    assert queue.list_jobs(JobStateEnum.COMPLETED) == []


def test_retry_waits_for_backoff(redis_connection, scorer, run_grading_worker):
    scorer.fail_times = 1
    queue = make_queue(redis_connection, backoff_delay=60)

    queue.enqueue(8, "student-1", 1)
    run_grading_worker(queue)

    job = queue.get_status(8)
    assert scorer.calls == [8]
    assert job.state == JobStateEnum.QUEUED
    assert job.attempts_made == 1
    assert [j.id for j in queue.list_jobs(JobStateEnum.QUEUED)] == ["grade-8"]

    # Not due yet, so nothing runs and a duplicate is not admitted.
    run_grading_worker(queue)
    assert scorer.calls == [8]
    _, admitted = queue.enqueue(8, "student-1", 1)
    assert admitted is False


def test_retry_failed_readmits_job(redis_connection, scorer, run_grading_worker):
    scorer.fail_times = 3
    queue = make_queue(redis_connection)

    queue.enqueue(9, "student-1", 1)
    run_grading_worker(queue)
    assert queue.get_status(9).state == JobStateEnum.FAILED

    job = queue.retry_failed(9)
    assert job.state == JobStateEnum.QUEUED
    assert job.attempts_made == 0
    assert job.failed_reason is None

    run_grading_worker(queue)
    job = queue.get_status(9)
    assert job.state == JobStateEnum.COMPLETED
    assert len(scorer.calls) == 4


def test_retry_failed_ignores_jobs_that_did_not_fail(redis_connection):
    queue = make_queue(redis_connection)
    assert queue.retry_failed(404) is None

    queue.enqueue(10, "student-1", 1)
    assert queue.retry_failed(10) is None


def test_timed_out_job_stops_its_scoring_run(redis_connection, monkeypatch, run_grading_worker):
    finished = []

    def slow_score(db, attempt_id):
        time.sleep(5)
        finished.append(attempt_id)

    monkeypatch.setattr(attempt_scorer, "score_attempt", slow_score)
    queue = make_queue(redis_connection, job_timeout=1, max_attempts=1)
    queue.enqueue(11, "student-1", 1)
    run_grading_worker(queue)

    job = queue.get_status(11)
    assert job.state == JobStateEnum.FAILED
    assert job.failed_reason.startswith("JobTimeoutException")
    # The timed-out run was stopped, not left scoring in the background.
    assert finished == []


def simulate_worker_death(queue: GradingQueue, attempt_id: int, attempts_made: int = 1) -> Job:
    """Leaves the job the way a worker killed mid-run does: claimed, marked active, never finished."""
    job = Job.fetch(queue.job_id_for(attempt_id), connection=queue.connection)
    queue.queue.remove(job)
    job.meta.update({"state": JobStateEnum.ACTIVE.value, "progress": 10, "attempts_made": attempts_made})
    job.save_meta()
    job.set_status(JobStatus.STARTED)
    # A started entry scored in the past has outlived its heartbeat.
    queue.connection.zadd(queue.queue.started_job_registry.key, {job.id: 1})
    return job


def test_interrupted_job_is_recovered_and_completed(redis_connection, scorer, run_grading_worker):
    queue = make_queue(redis_connection)
    queue.enqueue(12, "student-1", 1)
    simulate_worker_death(queue, 12)

    assert queue.get_status(12).state == JobStateEnum.ACTIVE
    assert queue.list_jobs(JobStateEnum.QUEUED) == []

    queue.recover_interrupted()
    assert [j.id for j in queue.list_jobs(JobStateEnum.QUEUED)] == ["grade-12"]
    run_grading_worker(queue)

    job = queue.get_status(12)
    assert scorer.calls == [12]
    assert job.state == JobStateEnum.COMPLETED
    assert job.attempts_made == 2

    _, admitted = queue.enqueue(12, "student-1", 1)
    assert admitted is True


def test_job_interrupted_on_last_attempt_stays_failed(redis_connection, scorer, run_grading_worker):
    queue = make_queue(redis_connection, max_attempts=1)
    queue.enqueue(13, "student-1", 1)
    simulate_worker_death(queue, 13, attempts_made=1)

    assert queue.recover_interrupted() == 0
    run_grading_worker(queue)

    job = queue.get_status(13)
    assert scorer.calls == []
    assert job.state == JobStateEnum.FAILED
    assert job.failed_reason == "Worker stopped during the final attempt"


class FakeClock:
    def __init__(self, now: float):
        self.now = now
        self.slept = []

    def time(self):
        return self.now

    def sleep(self, seconds):
        self.slept.append(seconds)
        self.now += seconds


def test_rate_slot_waits_for_next_window_when_full(redis_connection, monkeypatch):
    clock = FakeClock(now=1000.25)
    monkeypatch.setattr(grading_jobs, "time", clock)

    for _ in range(3):
        grading_jobs.wait_for_rate_slot(redis_connection, max_calls=3, period=1.0)
    assert clock.slept == []

    grading_jobs.wait_for_rate_slot(redis_connection, max_calls=3, period=1.0)
    assert clock.slept == [pytest.approx(0.75)]
    assert clock.now == pytest.approx(1001.0)
