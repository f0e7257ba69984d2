"""Core exceptions for Sitedoc request context and report delivery."""

from typing import Any
from uuid import UUID

from sitedoc.utils.exceptions import SitedocError


class ContextNotSetError(SitedocError):
    """Raised when attempting to access request context that is not set.

    This error indicates a programming error - operations requiring context
    are being called outside of a request_context() context manager.
    """

    def __init__(self, message: str = "Request context is not set"):
        super().__init__(message)


class AuthenticationError(SitedocError):
    """Raised when authentication fails.

    Attributes:
        reason: The specific reason authentication failed
    """

    def __init__(self, reason: str = "Authentication failed"):
        super().__init__(reason)
        self.reason = reason

    def __str__(self) -> str:
        return f"AuthenticationError: {self.args[0]}"


# =============================================================================
# Report Errors
# =============================================================================


class ReportError(SitedocError):
    """Base exception for report generation and delivery errors.

    Attributes:
        message: Human-readable message, safe to show to the requester
        code: Machine-readable error code
        details: Additional structured context
    """

    code: str = "REPORT_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return f"{type(self).__name__}: {self.message}"


class InvalidParametersError(ReportError):
    """Raised when report parameters are malformed or incomplete.

    Missing project id, inverted date range, or a kind with no aggregator.
    """

    code = "INVALID_PARAMETERS"


class AccessDeniedError(ReportError):
    """Raised when the requester lacks the role or membership required."""

    code = "ACCESS_DENIED"

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(f"Access denied: {reason}", details=details)
        self.reason = reason


class ReportNotFoundError(ReportError):
    """Raised when a report does not exist or is outside the requester's organizations.

    The two cases produce the same message so callers cannot probe for
    reports belonging to other organizations.
    """

    code = "NOT_FOUND"

    def __init__(self, report_id: UUID | str):
        super().__init__("Report not found")
        self.report_id = report_id


class InspectionNotFoundError(ReportError):
    """Raised when an inspection does not exist or is outside the actor's organizations."""

    code = "NOT_FOUND"

    def __init__(self, inspection_id: UUID | str):
        super().__init__("Inspection not found")
        self.inspection_id = inspection_id


class ReportFailedError(ReportError):
    """Raised when a download is requested for a report whose job failed.

    Attributes:
        report_id: The failed report
        error_message: The message recorded on the report
    """

    code = "REPORT_FAILED"

    def __init__(self, report_id: UUID | str, error_message: str | None):
        recorded = error_message or "Report generation failed"
        super().__init__(recorded, details={"report_id": str(report_id)})
        self.report_id = report_id
        self.error_message = recorded


class AggregationError(ReportError):
    """Raised when report data cannot be collected from the store."""

    code = "AGGREGATION_FAILED"


class RenderingError(ReportError):
    """Raised when rendering a dataset into an output format fails."""

    code = "RENDERING_FAILED"

    def __init__(self, output_format: str, reason: str) -> None:
        super().__init__(
            f"Failed to render {output_format} report: {reason}",
            details={"format": output_format, "reason": reason},
        )
        self.output_format = output_format
        self.reason = reason


class UnsupportedFormatError(ReportError):
    """Raised when no renderer exists for the requested output format."""

    code = "UNSUPPORTED_FORMAT"

    def __init__(self, output_format: str):
        super().__init__(
            f"Unsupported report format: {output_format}",
            details={"format": output_format},
        )
        self.output_format = output_format


class StorageError(ReportError):
    """Raised when an artifact cannot be written to or removed from the blob store."""

    code = "STORAGE_FAILED"


class InvalidTransitionError(ReportError):
    """Raised when a report status change is not allowed from its current status."""

    code = "INVALID_TRANSITION"

    def __init__(self, report_id: UUID | str, current: str, target: str):
        super().__init__(
            f"Cannot move report from {current} to {target}",
            details={"report_id": str(report_id), "current": current, "target": target},
        )
        self.report_id = report_id
        self.current = current
        self.target = target
