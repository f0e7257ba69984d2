"""API schemas for request/response validation."""

from .errors import APIError, ErrorCode
from .health import ComponentHealth, HealthDetailResponse, HealthResponse, HealthStatus
from .reports import (
    AuditEventResponse,
    InspectionFinalizeRequest,
    InspectionFinalizeResponse,
    ReportAcceptedResponse,
    ReportAuditTrailResponse,
    ReportCreateRequest,
    ReportDeleteResponse,
    ReportListResponse,
    ReportNotReadyResponse,
    ReportResponse,
)

__all__ = [
    # Error schemas
    "APIError",
    "ErrorCode",
    # Health schemas
    "ComponentHealth",
    "HealthStatus",
    "HealthResponse",
    "HealthDetailResponse",
    # Report schemas
    "ReportCreateRequest",
    "ReportAcceptedResponse",
    "ReportResponse",
    "ReportListResponse",
    "ReportNotReadyResponse",
    "ReportDeleteResponse",
    "ReportAuditTrailResponse",
    "AuditEventResponse",
    # Inspection schemas
    "InspectionFinalizeRequest",
    "InspectionFinalizeResponse",
]
