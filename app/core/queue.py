from typing import Optional

from redis import Redis
from rq import Queue

from app.core.config import settings

def create_redis_connection(url: Optional[str] = None) -> Redis:
    return Redis.from_url(url or settings.REDIS_URL)

def create_rq_queue(connection: Redis) -> Queue:
    return Queue(
        settings.GRADING_QUEUE_NAME,
        connection=connection,
        default_timeout=settings.GRADING_JOB_TIMEOUT,
    )
