"""Error response schemas for API."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication & Authorization
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"

    # Request errors
    INVALID_PARAMETERS = "invalid_parameters"
    UNSUPPORTED_FORMAT = "unsupported_format"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"

    # Report lifecycle
    REPORT_FAILED = "report_failed"
    INVALID_TRANSITION = "invalid_transition"

    # System errors
    INTERNAL_ERROR = "internal_error"


class APIError(BaseModel):
    """Standardized API error response format.

    All API errors return this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(default=None, description="Additional error context")
    request_id: str = Field(..., description="Request ID for tracing (UUIDv7)")
    timestamp: datetime = Field(..., description="When the error occurred")

    model_config = {
        "json_schema_extra": {
            "example": {
                "error_code": "report_failed",
                "message": "Access denied: financial summary requires a financial access role",
                "details": {"report_id": "01928f3a-5b7c-7d00-8000-abcdef123456"},
                "request_id": "019478f2-1234-7000-8000-abcdef123456",
                "timestamp": "2026-01-30T12:00:00Z",
            }
        }
    }
