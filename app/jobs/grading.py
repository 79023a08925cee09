import logging
import math
import time
from typing import Any, Dict, Optional

from redis import Redis
from rq import get_current_job

from app.core.config import settings
from app.core.constants import JobStateEnum
from app.core.database import SessionLocal
from app.core.queue import create_redis_connection, create_rq_queue
from app.services.attempt_scorer import attempt_scorer
from app.services.grading_queue import GradingQueue

logger = logging.getLogger(__name__)


def wait_for_rate_slot(connection: Redis, max_calls: int, period: float) -> None:
    """Fixed-window ceiling on job starts, shared by every worker on the same Redis."""
    while True:
        window = int(time.time() // period)
        key = f"{settings.GRADING_QUEUE_NAME}:rate:{window}"
        pipe = connection.pipeline()
        pipe.incr(key)
        pipe.expire(key, math.ceil(period) + 1)
        count, _ = pipe.execute()
        if count <= max_calls:
            return
        time.sleep(max((window + 1) * period - time.time(), 0.01))


def _update_meta(job, **values) -> None:
    job.meta.update(values)
    job.save_meta()


def grade_attempt(attempt_id: int, user_id: str, test_id: int) -> Dict[str, Any]:
    job = get_current_job()
    attempts_made = job.meta.get("attempts_made", 0) + 1
    max_attempts = job.meta.get("max_attempts", settings.GRADING_MAX_ATTEMPTS)
    _update_meta(job, state=JobStateEnum.ACTIVE.value, progress=10, attempts_made=attempts_made)
    logger.info(
        f"Processing grading job {job.id} for attempt {attempt_id} "
        f"(user {user_id}, test {test_id}, run {attempts_made}/{max_attempts})"
    )

    wait_for_rate_slot(job.connection, settings.GRADING_RATE_LIMIT_MAX, settings.GRADING_RATE_LIMIT_DURATION)

    db = SessionLocal()
    try:
        result = attempt_scorer.score_attempt(db, attempt_id).as_job_result()
    except Exception as e:
        reason = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
        _update_meta(job, state=JobStateEnum.FAILED.value, failed_reason=reason)
        if attempts_made >= max_attempts:
            logger.error(f"Grading job {job.id} failed permanently after {attempts_made} run(s): {reason}")
        else:
            logger.warning(f"Grading job {job.id} failed on run {attempts_made}, will retry: {reason}")
        raise
    finally:
        db.close()

    _update_meta(job, state=JobStateEnum.COMPLETED.value, progress=100, result=result, failed_reason=None)
    return result


def build_grading_queue(connection: Optional[Redis] = None) -> GradingQueue:
    return GradingQueue(
        create_rq_queue(connection or create_redis_connection()),
        max_attempts=settings.GRADING_MAX_ATTEMPTS,
        backoff_delay=settings.GRADING_BACKOFF_DELAY,
        job_timeout=settings.GRADING_JOB_TIMEOUT,
        completed_ttl=settings.GRADING_COMPLETED_TTL,
        failed_ttl=settings.GRADING_FAILED_TTL,
        enqueue_lock_ttl=settings.GRADING_ENQUEUE_LOCK_TTL,
    )
