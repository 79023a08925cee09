from pydantic import BaseModel
from typing import List, Optional

from app.core.constants import TestStatusEnum
from app.schemas.attempt import Attempt

class DashboardStats(BaseModel):
    total_tests: int
    total_attempts: int
    total_users: int
    avg_score: int
    recent_attempts: List[Attempt]

class TestStatistics(BaseModel):
    test_id: int
    title: str
    status: TestStatusEnum
    total_attempts: int
    completed_attempts: int
    unique_users: int
    avg_score: Optional[float] = None
    avg_duration_seconds: Optional[float] = None
    pass_rate: Optional[float] = None

class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    best_score: float
    best_time_seconds: Optional[int] = None
    attempt_count: int
