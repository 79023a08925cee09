from decimal import Decimal, InvalidOperation
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List

from app.core.constants import QuestionTypeEnum, MANUAL_GRADED_TYPES

class QuestionOptionCreate(BaseModel):
    label: str = Field(..., min_length=1, max_length=500)
    is_correct: bool = False
    order_index: int = Field(0, ge=0)

class QuestionOption(BaseModel):
    id: int
    label: str
    order_index: int
    is_correct: Optional[bool] = None

    model_config = ConfigDict(from_attributes=True)

class QuestionCreate(BaseModel):
    type: QuestionTypeEnum
    prompt: str = Field(..., min_length=1, max_length=5000)
    explanation: Optional[str] = Field(None, max_length=5000)
    points: float = Field(1.0, gt=0, le=1000)
    tolerance_numeric: Optional[float] = Field(None, ge=0)
    order_index: int = Field(0, ge=0)
    options: List[QuestionOptionCreate] = []

    @model_validator(mode="after")
    def validate_answer_key(self):
        correct = [option for option in self.options if option.is_correct]

        if self.tolerance_numeric is not None and self.type != QuestionTypeEnum.NUMBER:
            raise ValueError("tolerance_numeric is only allowed on number questions")

        if self.type in (QuestionTypeEnum.MCQ_SINGLE, QuestionTypeEnum.TRUE_FALSE):
            if len(self.options) < 2:
                raise ValueError(f"{self.type.value} questions need at least two options")
            if len(correct) != 1:
                raise ValueError(f"{self.type.value} questions must have exactly one correct option")
        elif self.type == QuestionTypeEnum.MCQ_MULTI:
            if len(self.options) < 2:
                raise ValueError("mcq_multi questions need at least two options")
            if not correct:
                raise ValueError("mcq_multi questions must have at least one correct option")
        elif self.type == QuestionTypeEnum.NUMBER:
            if len(self.options) != 1 or len(correct) != 1:
                raise ValueError("number questions store their answer in exactly one correct option")
            try:
                Decimal(correct[0].label.strip())
            except InvalidOperation:
                raise ValueError("number answer key must be numeric")
        elif self.type in MANUAL_GRADED_TYPES and self.options:
            raise ValueError(f"{self.type.value} questions do not take options")
        return self

class Question(BaseModel):
    id: int
    test_id: int
    type: QuestionTypeEnum
    prompt: str
    explanation: Optional[str] = None
    points: float
    tolerance_numeric: Optional[float] = None
    order_index: int
    options: List[QuestionOption] = []

    model_config = ConfigDict(from_attributes=True)
