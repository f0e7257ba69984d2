"""Inspection finalization.

Finalizing an inspection is the primary effect and is committed first. The
ITP report catalog entry and the audit event follow as non-critical side
effects: if either fails the inspection stays finalized.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitedoc.core.audit import record_audit_event
from sitedoc.core.error_handling import best_effort
from sitedoc.core.exceptions import InspectionNotFoundError, InvalidParametersError
from sitedoc.core.logging import get_logger
from sitedoc.db.models.audit import AuditEventType
from sitedoc.db.models.base import utcnow
from sitedoc.db.models.site import Inspection, OrganizationMember, Project
from sitedoc.reporting.indexer import IndexedReport, ReportIndexer
from sitedoc.reporting.job import slugify
from sitedoc.reporting.types import ReportKind

logger = get_logger(__name__)

FINAL_STATUS = "completed"
RESULTS = frozenset({"pass", "fail"})


def overall_result(checklist_items: list[dict]) -> str:
    """``fail`` if any checklist item failed, otherwise ``pass``."""
    return "fail" if any(item.get("result") == "fail" for item in checklist_items) else "pass"


def itp_pointer(inspection_id: UUID) -> str:
    return f"itp://inspections/{inspection_id}"


class InspectionService:
    """Finalizes inspections and catalogues their ITP reports."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        indexer: ReportIndexer,
    ):
        self._session_factory = session_factory
        self.indexer = indexer

    async def finalize(
        self, inspection_id: UUID, actor_id: UUID, *, result: str | None = None
    ) -> Inspection:
        """Mark an inspection completed and index its ITP report.

        Re-finalizing an inspection (edit and resubmit) is allowed and
        refreshes the existing catalog entry.

        Raises:
            InspectionNotFoundError: If the inspection does not exist or the
                actor is not a member of its organization
            InvalidParametersError: If ``result`` is not pass or fail
        """
        if result is not None and result not in RESULTS:
            raise InvalidParametersError(
                "result must be 'pass' or 'fail'", details={"result": result}
            )

        async with self._session_factory() as session:
            row = (
                await session.execute(
                    select(Inspection, Project)
                    .join(Project, Project.id == Inspection.project_id)
                    .join(
                        OrganizationMember,
                        OrganizationMember.organization_id == Project.organization_id,
                    )
                    .where(Inspection.id == inspection_id, OrganizationMember.user_id == actor_id)
                )
            ).first()
            if row is None:
                raise InspectionNotFoundError(inspection_id)
            inspection, project = row

            inspection.status = FINAL_STATUS
            inspection.result = result or overall_result(inspection.checklist_items)
            inspection.finalized_at = utcnow()
            await session.commit()

        organization_id = project.organization_id
        logger.info(
            "Inspection finalized",
            inspection_id=str(inspection_id),
            organization_id=str(organization_id),
            result=inspection.result,
        )

        async with best_effort("index_itp_report", inspection_id=str(inspection_id)):
            await self.indexer.upsert(
                organization_id,
                ReportKind.ITP_REPORT,
                str(inspection_id),
                IndexedReport(
                    name=f"ITP Report - {inspection.template_name}",
                    description=f"{project.name}: {inspection.template_name}",
                    requested_by=actor_id,
                    pointer=itp_pointer(inspection_id),
                    file_name=f"itp-report-{slugify(inspection.template_name)}.pdf",
                    parameters={
                        "project_id": str(project.id),
                        "inspection_id": str(inspection_id),
                        **({"lot_id": str(inspection.lot_id)} if inspection.lot_id else {}),
                    },
                ),
            )

        async with best_effort("audit_inspection_finalized", inspection_id=str(inspection_id)):
            await record_audit_event(
                self._session_factory,
                AuditEventType.INSPECTION_FINALIZED,
                organization_id=organization_id,
                resource_type="inspection",
                resource_id=inspection_id,
                event_data={"result": inspection.result},
                user_id=actor_id,
            )

        return inspection
