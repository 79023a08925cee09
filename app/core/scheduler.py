import logging
import os
from datetime import datetime
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.core.config import settings
from app.services.grading_queue import GradingQueue

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def recover_interrupted_grading_jobs(queue: GradingQueue):
    try:
        recovered = queue.recover_interrupted()
        if recovered:
            logger.info(f"Re-queued {recovered} interrupted grading job(s)")
    except Exception as e:
        logger.error(f"Error recovering interrupted grading jobs: {e}")


def start_scheduler(queue: GradingQueue):
    if os.getenv("TESTING") == "true":
        logger.info("Scheduler disabled in test environment")
        return

    if not scheduler.running:
        scheduler.add_job(
            recover_interrupted_grading_jobs,
            'interval',
            minutes=settings.GRADING_RECOVERY_INTERVAL_MINUTES,
            args=[queue],
            id='recover_interrupted_grading_jobs',
            name='Recover Interrupted Grading Jobs',
            next_run_time=datetime.now(),
            replace_existing=True
        )
        scheduler.start()
        logger.info("Scheduler started with interrupted grading job recovery")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
