"""API middleware components."""

from .auth import AuthenticationMiddleware
from .context import RequestContextMiddleware
from .errors import ErrorHandlingMiddleware, register_exception_handlers
from .logging import RequestLoggingMiddleware
from .observability import ObservabilityMiddleware

__all__ = [
    "AuthenticationMiddleware",
    "ErrorHandlingMiddleware",
    "ObservabilityMiddleware",
    "RequestContextMiddleware",
    "RequestLoggingMiddleware",
    "register_exception_handlers",
]
