import logging

from rq.worker_pool import WorkerPool

from app.core.config import settings
from app.core.logging import configure_logging
from app.core.queue import create_redis_connection
from app.jobs.grading import build_grading_queue

logger = logging.getLogger(__name__)


def run_worker():
    connection = create_redis_connection()
    queue = build_grading_queue(connection)

    recovered = queue.recover_interrupted()
    if recovered:
        logger.info(f"Re-queued {recovered} interrupted grading job(s) before starting workers")

    # Each worker forks a work horse per job; a job past GRADING_JOB_TIMEOUT has its horse killed.
    pool = WorkerPool([queue.queue], connection=connection, num_workers=settings.GRADING_CONCURRENCY)
    logger.info(f"Starting {settings.GRADING_CONCURRENCY} grading worker(s) on queue {settings.GRADING_QUEUE_NAME}")
    pool.start(logging_level=settings.LOG_LEVEL)


if __name__ == "__main__":
    configure_logging()
    run_worker()
