"""Error handling for mapping exceptions to HTTP responses.

Report errors raised by route handlers are converted by FastAPI exception
handlers registered in ``register_exception_handlers``. Anything that still
escapes is caught by ``ErrorHandlingMiddleware`` and returned as a 500
without internal detail.
"""

from datetime import UTC, datetime
from typing import Callable
from uuid import UUID

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from sitedoc.api.schemas.errors import APIError, ErrorCode
from sitedoc.core.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    InspectionNotFoundError,
    InvalidParametersError,
    InvalidTransitionError,
    ReportError,
    ReportFailedError,
    ReportNotFoundError,
    UnsupportedFormatError,
)
from sitedoc.core.logging import get_logger

logger = get_logger(__name__)

# Exception to HTTP status/error code mapping
# Format: Exception -> (status_code, error_code)
EXCEPTION_MAP: dict[type[Exception], tuple[int, str]] = {
    AuthenticationError: (401, ErrorCode.UNAUTHORIZED.value),
    InvalidParametersError: (400, ErrorCode.INVALID_PARAMETERS.value),
    UnsupportedFormatError: (400, ErrorCode.UNSUPPORTED_FORMAT.value),
    AccessDeniedError: (403, ErrorCode.FORBIDDEN.value),
    ReportNotFoundError: (404, ErrorCode.NOT_FOUND.value),
    InspectionNotFoundError: (404, ErrorCode.NOT_FOUND.value),
    ReportFailedError: (409, ErrorCode.REPORT_FAILED.value),
    InvalidTransitionError: (409, ErrorCode.INVALID_TRANSITION.value),
}


def map_exception(exc: Exception) -> tuple[int, str, str, dict | None]:
    """Map exception to (status_code, error_code, message, details)."""
    # Not-found bodies carry no details so foreign and unknown ids look alike
    if isinstance(exc, ReportNotFoundError | InspectionNotFoundError):
        return 404, ErrorCode.NOT_FOUND.value, exc.message, None

    for exc_type, (status_code, error_code) in EXCEPTION_MAP.items():
        if isinstance(exc, exc_type):
            if isinstance(exc, ReportError):
                return status_code, error_code, exc.message, exc.details or None
            return status_code, error_code, str(exc), None

    if isinstance(exc, RequestValidationError | ValidationError):
        return (
            422,
            ErrorCode.VALIDATION_ERROR.value,
            "Request validation failed",
            {"errors": _jsonable_errors(exc.errors())},
        )

    # Aggregation, rendering and storage failures reach clients only generically
    return 500, ErrorCode.INTERNAL_ERROR.value, "Internal server error", None


def _jsonable_errors(errors: list | tuple) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in errors
    ]


def _request_id(request: Request) -> str:
    """Extract request ID from state or use a placeholder."""
    rid = getattr(request.state, "request_id", None)
    if rid is None:
        return "unknown"
    return str(rid) if isinstance(rid, UUID) else rid


def error_response(request: Request, exc: Exception) -> JSONResponse:
    """Convert exception to JSON error response."""
    request_id = _request_id(request)
    status_code, error_code, message, details = map_exception(exc)

    error = APIError(
        error_code=error_code,
        message=message,
        details=details,
        request_id=request_id,
        timestamp=datetime.now(UTC),
    )

    return JSONResponse(
        status_code=status_code,
        content=error.model_dump(mode="json"),
        headers={"X-Request-ID": request_id},
    )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware that catches unhandled exceptions and returns standardized errors."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and handle any exceptions."""
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception(
                "Unhandled exception",
                method=request.method,
                path=request.url.path,
                error_type=type(exc).__name__,
            )
            return error_response(request, exc)


async def _report_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = map_exception(exc)[0]
    if status_code >= 500:
        logger.error(
            "Report operation failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=str(exc),
        )
    return error_response(request, exc)


async def _validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return error_response(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers that render domain and validation errors as ``APIError``."""
    app.add_exception_handler(ReportError, _report_error_handler)
    app.add_exception_handler(AuthenticationError, _report_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
