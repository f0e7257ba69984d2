"""Core services and utilities for sitedoc."""

from .audit import AuditLogger, record_audit_event
from .context import (
    ActorType,
    RequestContext,
    create_context,
    get_current_context,
    get_current_context_or_none,
    job_context,
    request_context,
)
from .error_handling import best_effort, bound_error_message, describe_failure
from .exceptions import (
    AccessDeniedError,
    AggregationError,
    AuthenticationError,
    ContextNotSetError,
    InspectionNotFoundError,
    InvalidParametersError,
    InvalidTransitionError,
    RenderingError,
    ReportError,
    ReportFailedError,
    ReportNotFoundError,
    StorageError,
    UnsupportedFormatError,
)

__all__ = [
    # Audit
    "AuditLogger",
    "record_audit_event",
    # Context
    "ActorType",
    "RequestContext",
    "create_context",
    "get_current_context",
    "get_current_context_or_none",
    "job_context",
    "request_context",
    # Error handling
    "best_effort",
    "bound_error_message",
    "describe_failure",
    # Exceptions
    "AccessDeniedError",
    "AggregationError",
    "AuthenticationError",
    "ContextNotSetError",
    "InspectionNotFoundError",
    "InvalidParametersError",
    "InvalidTransitionError",
    "RenderingError",
    "ReportError",
    "ReportFailedError",
    "ReportNotFoundError",
    "StorageError",
    "UnsupportedFormatError",
]
