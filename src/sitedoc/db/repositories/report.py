"""Repository for report request rows.

Every status change is a conditional ``UPDATE`` whose ``WHERE`` clause
names the statuses the transition may start from. The affected row count
tells the caller whether the update applied, so a worker that loses a claim
race, or a stale update arriving after a terminal state, changes nothing.
"""

from collections.abc import Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import select, update

from sitedoc.core.logging import get_logger
from sitedoc.db.models.base import utcnow
from sitedoc.db.models.report import ReportRequest
from sitedoc.reporting.state import sources_for
from sitedoc.reporting.types import ReportStatus

from .base import BaseRepository

logger = get_logger(__name__)

_CLEARED_ARTIFACT: dict[str, Any] = {
    "file_location": None,
    "file_name": None,
    "file_size": None,
    "mime_type": None,
    "includes_financials": False,
    "completed_at": None,
}


class ReportRequestRepository(BaseRepository[ReportRequest, UUID]):
    """Persistence operations for ``ReportRequest``."""

    # =========================================================================
    # Guarded status updates
    # =========================================================================

    async def _guarded_update(
        self, report_id: UUID, allowed_from: Sequence[str], values: dict[str, Any]
    ) -> bool:
        stmt = (
            update(ReportRequest)
            .where(ReportRequest.id == report_id, ReportRequest.status.in_(allowed_from))
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        applied = result.rowcount == 1
        if not applied:
            logger.debug(
                "Guarded report update skipped",
                report_id=str(report_id),
                allowed_from=list(allowed_from),
            )
        return applied

    async def claim(self, report_id: UUID, step: str, progress: int = 10) -> bool:
        """Atomically move a ``queued`` row to ``processing``.

        Returns:
            True if this caller won the claim
        """
        return await self._guarded_update(
            report_id,
            [ReportStatus.QUEUED.value],
            {
                "status": ReportStatus.PROCESSING.value,
                "progress": progress,
                "current_step": step,
                "started_at": utcnow(),
            },
        )

    async def update_progress(self, report_id: UUID, progress: int, step: str) -> bool:
        """Record an intermediate step; progress never moves backwards."""
        stmt = (
            update(ReportRequest)
            .where(
                ReportRequest.id == report_id,
                ReportRequest.status == ReportStatus.PROCESSING.value,
                ReportRequest.progress <= progress,
            )
            .values(progress=progress, current_step=step, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount == 1

    async def mark_completed(
        self,
        report_id: UUID,
        *,
        file_location: str,
        file_name: str,
        file_size: int,
        mime_type: str,
        includes_financials: bool,
    ) -> bool:
        return await self._guarded_update(
            report_id,
            [ReportStatus.PROCESSING.value],
            {
                "status": ReportStatus.COMPLETED.value,
                "progress": 100,
                "current_step": "Report generated",
                "error_message": None,
                "file_location": file_location,
                "file_name": file_name,
                "file_size": file_size,
                "mime_type": mime_type,
                "includes_financials": includes_financials,
                "completed_at": utcnow(),
            },
        )

    async def mark_failed(self, report_id: UUID, error_message: str) -> bool:
        """Record a failure from ``queued`` or ``processing``."""
        return await self._guarded_update(
            report_id,
            sources_for(ReportStatus.FAILED),
            {
                "status": ReportStatus.FAILED.value,
                "current_step": "Failed",
                "error_message": error_message,
                "failed_at": utcnow(),
                **_CLEARED_ARTIFACT,
            },
        )

    async def reset_for_retry(self, report_id: UUID) -> bool:
        """Administrative reset of a terminal row back to ``queued``."""
        return await self._guarded_update(
            report_id,
            sources_for(ReportStatus.QUEUED, administrative=True),
            {
                "status": ReportStatus.QUEUED.value,
                "progress": 0,
                "current_step": None,
                "error_message": None,
                "started_at": None,
                "failed_at": None,
                **_CLEARED_ARTIFACT,
            },
        )

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_for_organizations(
        self, report_id: UUID, organization_ids: Sequence[UUID]
    ) -> ReportRequest | None:
        """Fetch a row only if it belongs to one of ``organization_ids``."""
        if not organization_ids:
            return None
        stmt = select(ReportRequest).where(
            ReportRequest.id == report_id,
            ReportRequest.organization_id.in_(list(organization_ids)),
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_organization(
        self,
        organization_id: UUID,
        *,
        requested_by: UUID | None = None,
        status: str | None = None,
        kind: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ReportRequest]:
        """Rows for one organization, newest first."""
        stmt = select(ReportRequest).where(ReportRequest.organization_id == organization_id)
        if requested_by is not None:
            stmt = stmt.where(ReportRequest.requested_by == requested_by)
        if status is not None:
            stmt = stmt.where(ReportRequest.status == status)
        if kind is not None:
            stmt = stmt.where(ReportRequest.kind == kind)
        stmt = (
            stmt.order_by(ReportRequest.requested_at.desc(), ReportRequest.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def recent_by_kind(
        self, organization_id: UUID, kind: str, *, limit: int
    ) -> list[ReportRequest]:
        """The most recent ``limit`` rows of one kind for an organization."""
        stmt = (
            select(ReportRequest)
            .where(ReportRequest.organization_id == organization_id, ReportRequest.kind == kind)
            .order_by(ReportRequest.requested_at.desc(), ReportRequest.id.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def queued_ids(self) -> list[UUID]:
        """Ids of rows still waiting for a worker, oldest first."""
        stmt = select(ReportRequest.id).where(
            ReportRequest.status == ReportStatus.QUEUED.value
        )
        stmt = stmt.order_by(ReportRequest.requested_at.asc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
