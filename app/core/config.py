from pydantic_settings import BaseSettings
from typing import Optional, List

class Settings(BaseSettings):
    PROJECT_NAME: str = "Quizcore Scoring API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3000",
    ]

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./quizcore.db"
    TEST_DATABASE_URL: Optional[str] = None

    # Redis (grading queue)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # Grading
    GRADING_MODE: str = "queue"  # "queue" or "inline"
    GRADING_QUEUE_NAME: str = "grading"
    GRADING_CONCURRENCY: int = 10
    GRADING_RATE_LIMIT_MAX: int = 50
    GRADING_RATE_LIMIT_DURATION: float = 1.0
    GRADING_MAX_ATTEMPTS: int = 3
    GRADING_BACKOFF_DELAY: int = 2
    GRADING_JOB_TIMEOUT: int = 30
    GRADING_COMPLETED_TTL: int = 24 * 3600
    GRADING_FAILED_TTL: int = 7 * 24 * 3600
    GRADING_ENQUEUE_LOCK_TTL: int = 10
    GRADING_RECOVERY_INTERVAL_MINUTES: int = 5

    NEGATIVE_MARKING_FRACTION: float = 0.25

    @property
    def grading_inline(self) -> bool:
        return self.GRADING_MODE.lower() == "inline"

    class Config:
        env_file = ".env"

settings = Settings()
