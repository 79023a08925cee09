from datetime import datetime
from pydantic import BaseModel
from typing import Any, Dict, Optional

from app.core.constants import JobStateEnum

class GradingJobData(BaseModel):
    """Minimal identifying tuple. Workers re-read everything else from storage."""
    attempt_id: int
    user_id: str
    test_id: int

class GradingJob(BaseModel):
    id: str
    data: GradingJobData
    state: JobStateEnum = JobStateEnum.QUEUED
    progress: int = 0
    attempts_made: int = 0
    max_attempts: int = 3
    result: Optional[Dict[str, Any]] = None
    failed_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

class GradingJobStatus(BaseModel):
    id: str
    state: JobStateEnum
    progress: int
    attempts_made: int
    result: Optional[Dict[str, Any]] = None
    failed_reason: Optional[str] = None
