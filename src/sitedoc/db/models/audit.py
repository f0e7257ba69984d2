"""Audit trail of report requests, retries, downloads and deletions."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column
from uuid_utils.compat import uuid7

from .base import Base, PortableJSON, PortableUUID, utcnow


class AuditEventType(str, Enum):
    REPORT_REQUESTED = "report.requested"
    REPORT_RETRIED = "report.retried"
    REPORT_DOWNLOADED = "report.downloaded"
    REPORT_DELETED = "report.deleted"
    INSPECTION_FINALIZED = "inspection.finalized"


class AuditEvent(Base):
    """One append-only audit entry.

    ``correlation_id`` ties the entry to the request (or report job) that
    wrote it; entries written outside any context carry the nil UUID.
    ``actor_type`` is ``human`` for API users and ``system`` for report
    workers.
    """

    __tablename__ = "audit_events"

    audit_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)

    organization_id: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)
    user_id: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)
    actor_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    correlation_id: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)

    # "report" or "inspection"
    resource_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    resource_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    event_data: Mapped[dict] = mapped_column(PortableJSON(), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_audit_org_created", "organization_id", "created_at"),
        Index("idx_audit_correlation", "correlation_id"),
        Index("idx_audit_resource", "resource_type", "resource_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditEvent(type={self.event_type}, "
            f"{self.resource_type}={self.resource_id})>"
        )
