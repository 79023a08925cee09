from pydantic import BaseModel, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.core.constants import AttemptStatusEnum
from app.schemas.question import Question

class AttemptCreate(BaseModel):
    test_id: int

class AttemptAnswerDetail(BaseModel):
    question_id: int
    response_json: Optional[Dict[str, Any]] = None
    is_correct: Optional[bool] = None
    awarded_points: float = 0.0
    time_spent_seconds: int = 0
    feedback: Optional[str] = None
    question: Optional[Question] = None

class Attempt(BaseModel):
    id: int
    test_id: int
    user_id: str
    status: AttemptStatusEnum
    score: Optional[float] = None
    max_score: Optional[float] = None
    percentage: Optional[float] = None
    passed: Optional[bool] = None
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    graded_at: Optional[datetime] = None
    duration_seconds: int = 0
    attempt_no: int = 1
    results_pending: bool = False

    model_config = ConfigDict(from_attributes=True)

class AttemptDetails(Attempt):
    answers: Optional[List[AttemptAnswerDetail]] = None
