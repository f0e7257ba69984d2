"""Report request model: one row per report generation attempt."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from uuid_utils.compat import uuid7

from .base import Base, PortableJSON, PortableUUID, utcnow


class ReportRequest(Base):
    """Durable record of a report request, its status and its artifact.

    Status values are those of ``sitedoc.reporting.types.ReportStatus``.
    ``file_location`` is set only while the status is ``completed`` and
    ``error_message`` only while it is ``failed``. Rows produced by a
    workflow trigger carry a ``natural_key`` (for example the inspection id)
    so repeated triggers update one row instead of adding more.
    """

    __tablename__ = "report_requests"

    # UUIDv7 keeps ids roughly in request order
    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    organization_id: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)

    # Classification
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    format: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parameters: Mapped[dict] = mapped_column(PortableJSON(), nullable=False, default=dict)
    natural_key: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="queued")
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_step: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Artifact
    file_location: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    includes_financials: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Requester
    requested_by: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)

    # Timestamps
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_report_org_requested", "organization_id", "requested_at"),
        Index("idx_report_org_kind", "organization_id", "kind"),
        Index("idx_report_status", "status"),
        Index("idx_report_requested_by", "requested_by"),
        Index("idx_report_natural_key", "natural_key"),
    )

    def to_dict(self) -> dict:
        """Serialize the row for API responses and logs."""
        return {
            "id": str(self.id),
            "organization_id": str(self.organization_id),
            "kind": self.kind,
            "format": self.format,
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
            "status": self.status,
            "progress": self.progress,
            "current_step": self.current_step,
            "error_message": self.error_message,
            "file_location": self.file_location,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "requested_by": str(self.requested_by),
            "requested_at": self.requested_at.isoformat() if self.requested_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<ReportRequest(id={self.id}, kind={self.kind}, "
            f"format={self.format}, status={self.status})>"
        )
