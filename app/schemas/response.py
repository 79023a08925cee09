from pydantic import BaseModel, Field
from typing import Generic, TypeVar, Optional, Any, Dict

DataType = TypeVar("DataType")

class APIResponse(BaseModel, Generic[DataType]):
    """Envelope for every successful response."""
    message: str = Field(..., description="What the request did, e.g. 'Attempt submitted successfully'.")
    data: Optional[DataType] = Field(None, description="The test, attempt, answer or grading job the request produced.")

class ErrorDetail(BaseModel):
    code: str = Field(..., description="Stable error code derived from the HTTP status, e.g. CONFLICT")
    message: str = Field(..., description="Human-readable reason")
    details: Optional[Dict[str, Any]] = Field(None, description="Validation errors or the failing exception type")

class ErrorResponse(BaseModel):
    """Envelope for every error response, including grading failures surfaced over HTTP."""
    error: ErrorDetail
    timestamp: str = Field(..., description="ISO 8601 time the error was produced")
    path: str = Field(..., description="Request URL")
    request_id: Optional[str] = Field(None, description="Matches the X-Request-ID response header")
