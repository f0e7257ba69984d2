"""Idempotent catalog entries for reports produced by other workflows.

Finalizing an inspection produces an ITP report entry. The entry's identity
is the inspection id (its natural key), not the row id: upserting the same
key again updates the existing row in place instead of adding another.
The entry is complete at once; its location is a pointer back to the
originating record, and downloads render it on demand.
"""

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitedoc.core.logging import get_logger
from sitedoc.db.models.base import utcnow
from sitedoc.db.models.report import ReportRequest
from sitedoc.db.repositories.report import ReportRequestRepository
from sitedoc.observability.metrics import record_index_upsert
from sitedoc.reporting.types import ReportFormat, ReportKind, ReportStatus

logger = get_logger(__name__)

# Parameter holding the natural key, per indexed kind
NATURAL_KEY_FIELDS: dict[ReportKind, str] = {
    ReportKind.ITP_REPORT: "inspection_id",
}


@dataclass
class IndexedReport:
    """Catalog data for one indexed report."""

    name: str
    requested_by: UUID
    pointer: str
    file_name: str
    parameters: dict[str, Any] = field(default_factory=dict)
    description: str | None = None
    format: ReportFormat = ReportFormat.PDF
    mime_type: str = "application/pdf"


def matches_natural_key(row: ReportRequest, kind: ReportKind, natural_key: str) -> bool:
    if row.natural_key == natural_key:
        return True
    key_field = NATURAL_KEY_FIELDS.get(kind)
    return key_field is not None and str((row.parameters or {}).get(key_field)) == natural_key


class ReportIndexer:
    """Find-or-create of catalog rows keyed by a natural identity."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, lookback: int = 50):
        self._session_factory = session_factory
        self.lookback = lookback

    async def upsert(
        self,
        organization_id: UUID,
        kind: ReportKind,
        natural_key: str,
        report: IndexedReport,
    ) -> ReportRequest:
        """Update the row for ``natural_key`` or insert one.

        Only the most recent ``lookback`` rows of the kind are searched.
        """
        async with self._session_factory() as session:
            repo = ReportRequestRepository(session)
            recent = await repo.recent_by_kind(organization_id, kind.value, limit=self.lookback)
            existing = next(
                (row for row in recent if matches_natural_key(row, kind, natural_key)), None
            )
            now = utcnow()

            if existing is not None:
                existing.name = report.name
                existing.description = report.description
                existing.parameters = report.parameters
                existing.natural_key = natural_key
                existing.format = report.format.value
                existing.status = ReportStatus.COMPLETED.value
                existing.progress = 100
                existing.current_step = "Catalogued"
                existing.error_message = None
                existing.file_location = report.pointer
                existing.file_name = report.file_name
                existing.file_size = None
                existing.mime_type = report.mime_type
                existing.includes_financials = False
                existing.completed_at = now
                existing.failed_at = None
                existing.updated_at = now
                await session.commit()
                action, row = "updated", existing
            else:
                row = await repo.create(
                    ReportRequest(
                        organization_id=organization_id,
                        kind=kind.value,
                        format=report.format.value,
                        name=report.name,
                        description=report.description,
                        parameters=report.parameters,
                        natural_key=natural_key,
                        status=ReportStatus.COMPLETED.value,
                        progress=100,
                        current_step="Catalogued",
                        file_location=report.pointer,
                        file_name=report.file_name,
                        mime_type=report.mime_type,
                        requested_by=report.requested_by,
                        requested_at=now,
                        completed_at=now,
                        updated_at=now,
                    )
                )
                action = "inserted"

        record_index_upsert(kind.value, action)
        logger.info(
            "Report catalog entry upserted",
            report_id=str(row.id),
            organization_id=str(organization_id),
            kind=kind.value,
            natural_key=natural_key,
            action=action,
        )
        return row
