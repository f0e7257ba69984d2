"""API schemas for report and inspection endpoints.

Kept separate from the ORM rows and the reporting value types so the wire
format can be versioned on its own.
"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from sitedoc.db.models.audit import AuditEvent
from sitedoc.db.models.report import ReportRequest

# =============================================================================
# Request Schemas
# =============================================================================


class ReportCreateRequest(BaseModel):
    """Request body for a new report.

    Example:
        {
            "organization_id": "01928f3a-...",
            "kind": "project_summary",
            "format": "pdf",
            "parameters": {
                "project_id": "01928f3b-...",
                "date_range": {"start": "2026-01-01", "end": "2026-01-31"}
            }
        }

    ``kind`` and ``format`` are plain strings here; unknown values are
    rejected by the service with an error naming the supported ones.
    """

    organization_id: UUID
    kind: str = Field(..., min_length=1, max_length=50)
    format: str = Field(default="pdf", min_length=1, max_length=20)
    parameters: dict[str, Any] = Field(default_factory=dict)
    name: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=2000)


class InspectionFinalizeRequest(BaseModel):
    """Optional overall result; derived from the checklist when omitted."""

    result: Literal["pass", "fail"] | None = None


# =============================================================================
# Response Schemas
# =============================================================================


class ReportAcceptedResponse(BaseModel):
    report_id: UUID
    status: str


class ReportResponse(BaseModel):
    """Status document for one report request."""

    id: UUID
    organization_id: UUID
    kind: str
    format: str
    name: str
    description: str | None = None
    parameters: dict[str, Any]
    status: str
    progress: int
    current_step: str | None = None
    error_message: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    requested_by: UUID
    requested_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    expires_at: datetime | None = None
    updated_at: datetime

    @classmethod
    def from_row(cls, row: ReportRequest) -> "ReportResponse":
        # The storage location stays internal; clients download through the API
        return cls(
            id=row.id,
            organization_id=row.organization_id,
            kind=row.kind,
            format=row.format,
            name=row.name,
            description=row.description,
            parameters=row.parameters or {},
            status=row.status,
            progress=row.progress,
            current_step=row.current_step,
            error_message=row.error_message,
            file_name=row.file_name,
            file_size=row.file_size,
            mime_type=row.mime_type,
            requested_by=row.requested_by,
            requested_at=row.requested_at,
            started_at=row.started_at,
            completed_at=row.completed_at,
            failed_at=row.failed_at,
            expires_at=row.expires_at,
            updated_at=row.updated_at,
        )


class ReportListResponse(BaseModel):
    reports: list[ReportResponse]
    count: int
    limit: int
    offset: int


class ReportNotReadyResponse(BaseModel):
    """Returned with 202 while a report is still queued or processing."""

    report_id: UUID
    status: str
    progress: int
    current_step: str | None = None


class ReportDeleteResponse(BaseModel):
    success: bool = True


class AuditEventResponse(BaseModel):
    event_type: str
    user_id: UUID | None = None
    actor_type: str | None = None
    correlation_id: UUID
    event_data: dict[str, Any]
    created_at: datetime

    @classmethod
    def from_row(cls, row: AuditEvent) -> "AuditEventResponse":
        return cls(
            event_type=row.event_type,
            user_id=row.user_id,
            actor_type=row.actor_type,
            correlation_id=row.correlation_id,
            event_data=row.event_data or {},
            created_at=row.created_at,
        )


class ReportAuditTrailResponse(BaseModel):
    """Audit entries for one report, newest first."""

    report_id: UUID
    events: list[AuditEventResponse]


class InspectionFinalizeResponse(BaseModel):
    inspection_id: UUID
    status: str
    result: str | None
    finalized_at: datetime | None
