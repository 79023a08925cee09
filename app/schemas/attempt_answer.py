from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictFloat, TypeAdapter
from typing import Any, Dict, List, Optional, Union
from datetime import datetime

from app.core.constants import QuestionTypeEnum, MAX_TIME_SPENT_SECONDS

OptionRef = Union[StrictInt, str]

class SingleChoiceResponse(BaseModel):
    selected: OptionRef

class MultiChoiceResponse(BaseModel):
    selected: List[OptionRef]

class TextResponse(BaseModel):
    text: str = Field(..., max_length=20000)

class NumberResponse(BaseModel):
    value: Union[StrictInt, StrictFloat]

RESPONSE_ADAPTERS: Dict[QuestionTypeEnum, TypeAdapter] = {
    QuestionTypeEnum.MCQ_SINGLE: TypeAdapter(SingleChoiceResponse),
    QuestionTypeEnum.TRUE_FALSE: TypeAdapter(SingleChoiceResponse),
    QuestionTypeEnum.MCQ_MULTI: TypeAdapter(MultiChoiceResponse),
    QuestionTypeEnum.SHORT_TEXT: TypeAdapter(TextResponse),
    QuestionTypeEnum.LONG_TEXT: TypeAdapter(TextResponse),
    QuestionTypeEnum.NUMBER: TypeAdapter(NumberResponse),
}

def validate_response_shape(question_type: QuestionTypeEnum, response_json: Dict[str, Any]) -> Dict[str, Any]:
    """Checks response_json against the shape its question type expects. Raises pydantic.ValidationError."""
    model = RESPONSE_ADAPTERS[QuestionTypeEnum(question_type)].validate_python(response_json)
    return model.model_dump()

class AttemptAnswerUpsert(BaseModel):
    question_id: int
    response_json: Dict[str, Any]
    time_spent: Optional[int] = Field(None, ge=0, le=MAX_TIME_SPENT_SECONDS)

class AttemptAnswer(BaseModel):
    id: int
    attempt_id: int
    question_id: int
    response_json: Optional[Dict[str, Any]] = None
    is_correct: Optional[bool] = None
    awarded_points: float = 0.0
    time_spent_seconds: int = 0
    manually_graded: bool = False
    feedback: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class ManualGradeRequest(BaseModel):
    awarded_points: float = Field(..., ge=0, le=1000)
    feedback: Optional[str] = Field(None, max_length=2000)
