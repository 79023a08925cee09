from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

from app.core.constants import GradingTypeEnum, TestStatusEnum

class TestBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    pass_score: float = Field(50.0, ge=0, le=100, description="Percentage of max achievable points required to pass.")
    max_attempts: int = Field(1, ge=1, le=100)
    negative_marking: bool = False
    shuffle_questions: bool = False
    show_correct_answers: bool = False
    show_explanations: bool = False
    results_released: bool = False
    grading_type: GradingTypeEnum = GradingTypeEnum.AUTO_GRADED
    status: TestStatusEnum = TestStatusEnum.DRAFT

class TestCreate(TestBase):
    pass

class TestUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    pass_score: Optional[float] = Field(None, ge=0, le=100)
    max_attempts: Optional[int] = Field(None, ge=1, le=100)
    negative_marking: Optional[bool] = None
    shuffle_questions: Optional[bool] = None
    show_correct_answers: Optional[bool] = None
    show_explanations: Optional[bool] = None
    grading_type: Optional[GradingTypeEnum] = None
    status: Optional[TestStatusEnum] = None

class Test(TestBase):
    id: int
    results_release_date: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class ReleaseResultsSummary(BaseModel):
    test_id: int
    affected_attempts: int
