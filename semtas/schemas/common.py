from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body returned for business rule violations."""
    detail: Dict[str, Any] | str = Field(..., description="Message, error type and context")
    path: Optional[str] = None


ERROR_RESPONSES: Dict[int | str, Dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid input data"},
    404: {"model": ErrorResponse, "description": "Resource not found"},
    409: {"model": ErrorResponse, "description": "Invalid status transition or conflicting data"},
    422: {"model": ErrorResponse, "description": "Business rule violation"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}
