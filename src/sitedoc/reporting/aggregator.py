"""Data aggregation for report generation.

The aggregator turns typed report parameters into a ``ReportDataset``:
it loads the project and its related site records for the requesting
organization, computes statistics, and passes every record set through
the financial redactor before returning. It never writes.
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitedoc.core.exceptions import AggregationError
from sitedoc.core.logging import get_logger
from sitedoc.db.models.site import (
    DailyDiary,
    DiaryLabourEntry,
    DiaryMaterialEntry,
    DiaryPlantEntry,
    Inspection,
    Lot,
    NonConformance,
    Organization,
    Project,
)
from sitedoc.reporting.permissions import can_view_financials
from sitedoc.reporting.redaction import has_sensitive_fields, redact
from sitedoc.reporting.types import (
    DiaryExportParameters,
    FinancialSummaryParameters,
    InspectionSummaryParameters,
    ItpReportParameters,
    NcrReportParameters,
    ProjectSummaryParameters,
    ReportDataset,
    ReportKind,
    ReportParameters,
    Role,
)

logger = get_logger(__name__)

OPEN_NCR_STATUSES = frozenset({"open", "acknowledged", "in_progress"})
CLOSED_NCR_STATUSES = frozenset({"closed"})


def _plain(value: Any) -> Any:
    """Convert column values to JSON-friendly Python values."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    return value


def _money(value: Decimal | None) -> Decimal:
    return value if value is not None else Decimal("0")


def _inspection_stats(inspections: Sequence[dict[str, Any]]) -> dict[str, int]:
    total = len(inspections)
    passed = sum(1 for i in inspections if i["status"] == "completed" and i["result"] == "pass")
    failed = sum(1 for i in inspections if i["status"] == "completed" and i["result"] == "fail")
    return {
        "total_inspections": total,
        "passed_inspections": passed,
        "failed_inspections": failed,
        "pass_rate": round(passed / total * 100) if total else 0,
    }


def _ncr_stats(ncrs: Sequence[dict[str, Any]]) -> dict[str, int]:
    return {
        "total_ncrs": len(ncrs),
        "open_ncrs": sum(1 for n in ncrs if n["status"] in OPEN_NCR_STATUSES),
        "closed_ncrs": sum(1 for n in ncrs if n["status"] in CLOSED_NCR_STATUSES),
    }


class DataAggregator:
    """Builds report datasets from the site records of one organization.

    Every query is scoped through ``projects.organization_id``, so a project
    id from another organization resolves to "Project not found" and child
    rows of foreign projects are never read.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def aggregate(
        self,
        organization_id: UUID,
        parameters: ReportParameters,
        role: Role | str | None,
    ) -> ReportDataset:
        """Aggregate and redact the data for one report.

        Raises:
            AggregationError: If the project (or inspection) is not found in
                the organization, or the data store fails.
        """
        try:
            async with self._session_factory() as session:
                organization = await session.get(Organization, organization_id)
                project = await self._load_project(session, organization_id, parameters.project_id)
                match parameters:
                    case ProjectSummaryParameters():
                        dataset = await self._project_summary(session, project, parameters)
                    case DiaryExportParameters():
                        dataset = await self._diary_export(session, project, parameters)
                    case InspectionSummaryParameters():
                        dataset = await self._inspection_summary(session, project, parameters)
                    case NcrReportParameters():
                        dataset = await self._ncr_report(session, project, parameters)
                    case FinancialSummaryParameters():
                        dataset = await self._financial_summary(session, project, parameters)
                    case ItpReportParameters():
                        dataset = await self._itp_report(session, project, parameters)
        except SQLAlchemyError as e:
            logger.error(
                "Report aggregation query failed",
                organization_id=str(organization_id),
                kind=parameters.kind,
                error=str(e),
            )
            raise AggregationError("Failed to load report data") from e

        dataset.organization = {
            "id": str(organization_id),
            "name": organization.name if organization else "Unknown",
        }
        dataset.project = self._project_record(project)
        dataset.period = parameters.date_range
        return self._apply_redaction(dataset, role)

    # =========================================================================
    # Loading
    # =========================================================================

    async def _load_project(
        self, session: AsyncSession, organization_id: UUID, project_id: UUID
    ) -> Project:
        result = await session.execute(
            select(Project).where(
                Project.id == project_id, Project.organization_id == organization_id
            )
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise AggregationError("Project not found", details={"project_id": str(project_id)})
        return project

    @staticmethod
    def _project_record(project: Project) -> dict[str, Any]:
        return {
            "id": str(project.id),
            "name": project.name,
            "project_number": project.project_number,
            "status": project.status,
        }

    @staticmethod
    def _in_range(column: Any, stmt: Select, parameters: ReportParameters) -> Select:
        if parameters.date_range is not None:
            stmt = stmt.where(
                column >= parameters.date_range.start, column <= parameters.date_range.end
            )
        return stmt

    async def _diaries(
        self, session: AsyncSession, project: Project, parameters: ReportParameters
    ) -> list[DailyDiary]:
        stmt = (
            select(DailyDiary)
            .join(Project, Project.id == DailyDiary.project_id)
            .where(
                DailyDiary.project_id == project.id,
                Project.organization_id == project.organization_id,
            )
        )
        stmt = self._in_range(DailyDiary.diary_date, stmt, parameters)
        result = await session.execute(stmt.order_by(DailyDiary.diary_date.desc()))
        return list(result.scalars().all())

    async def _inspections(
        self,
        session: AsyncSession,
        project: Project,
        parameters: ReportParameters,
        *,
        lot_id: UUID | None = None,
        result_filter: str | None = None,
    ) -> list[dict[str, Any]]:
        stmt = (
            select(Inspection, Lot.lot_number)
            .join(Project, Project.id == Inspection.project_id)
            .outerjoin(Lot, Lot.id == Inspection.lot_id)
            .where(
                Inspection.project_id == project.id,
                Project.organization_id == project.organization_id,
            )
        )
        stmt = self._in_range(Inspection.inspection_date, stmt, parameters)
        if lot_id is not None:
            stmt = stmt.where(Inspection.lot_id == lot_id)
        if result_filter is not None:
            stmt = stmt.where(Inspection.result == result_filter)
        result = await session.execute(stmt.order_by(Inspection.inspection_date.desc()))
        return [
            {
                "id": str(inspection.id),
                "inspection_date": inspection.inspection_date,
                "template_name": inspection.template_name,
                "lot_number": lot_number,
                "status": inspection.status,
                "result": inspection.result,
                "inspector_name": inspection.inspector_name,
            }
            for inspection, lot_number in result.all()
        ]

    async def _ncrs(
        self,
        session: AsyncSession,
        project: Project,
        parameters: ReportParameters,
        *,
        statuses: Sequence[str] | None = None,
        severity: str | None = None,
    ) -> list[dict[str, Any]]:
        stmt = (
            select(NonConformance)
            .join(Project, Project.id == NonConformance.project_id)
            .where(
                NonConformance.project_id == project.id,
                Project.organization_id == project.organization_id,
            )
        )
        stmt = self._in_range(NonConformance.raised_on, stmt, parameters)
        if statuses:
            stmt = stmt.where(NonConformance.status.in_(list(statuses)))
        if severity is not None:
            stmt = stmt.where(NonConformance.severity == severity)
        result = await session.execute(stmt.order_by(NonConformance.raised_on.desc()))
        return [
            {
                "id": str(ncr.id),
                "ncr_number": ncr.ncr_number,
                "title": ncr.title,
                "severity": ncr.severity,
                "status": ncr.status,
                "raised_on": ncr.raised_on,
                "closed_on": ncr.closed_on,
            }
            for ncr in result.scalars().all()
        ]

    async def _lots(self, session: AsyncSession, project: Project) -> list[dict[str, Any]]:
        result = await session.execute(
            select(Lot).where(Lot.project_id == project.id).order_by(Lot.lot_number)
        )
        return [
            {
                "id": str(lot.id),
                "lot_number": lot.lot_number,
                "description": lot.description,
                "status": lot.status,
            }
            for lot in result.scalars().all()
        ]

    async def _entries(
        self, session: AsyncSession, model: type, diaries: Sequence[DailyDiary]
    ) -> list[Any]:
        if not diaries:
            return []
        result = await session.execute(
            select(model).where(model.diary_id.in_([d.id for d in diaries]))
        )
        return list(result.scalars().all())

    @staticmethod
    def _diary_record(diary: DailyDiary) -> dict[str, Any]:
        return {
            "id": str(diary.id),
            "diary_date": diary.diary_date,
            "weather": diary.weather,
            "activities": diary.activities,
            "status": diary.status,
            "workforce_count": sum(int(t.get("workers") or 0) for t in diary.trades_on_site),
            "trades_on_site": [
                {k: _plain(v) for k, v in trade.items()} for trade in diary.trades_on_site
            ],
        }

    # =========================================================================
    # Report kinds
    # =========================================================================

    async def _project_summary(
        self, session: AsyncSession, project: Project, parameters: ProjectSummaryParameters
    ) -> ReportDataset:
        diaries = [self._diary_record(d) for d in await self._diaries(session, project, parameters)]
        inspections = await self._inspections(session, project, parameters)
        ncrs = await self._ncrs(session, project, parameters)
        lots = await self._lots(session, project)

        statistics = {
            "total_diaries": len(diaries),
            **_inspection_stats(inspections),
            **_ncr_stats(ncrs),
            "total_lots": len(lots),
        }
        sections: dict[str, list[dict[str, Any]]] = {}
        if parameters.include_diaries:
            sections["daily_diaries"] = diaries
        if parameters.include_inspections:
            sections["inspections"] = inspections
        if parameters.include_ncrs:
            sections["ncrs"] = ncrs
        sections["lots"] = lots

        return ReportDataset(
            kind=ReportKind.PROJECT_SUMMARY,
            title="Project Summary Report",
            organization={},
            project={},
            statistics=statistics,
            sections=sections,
            preview_section="daily_diaries" if parameters.include_diaries else None,
        )

    async def _diary_export(
        self, session: AsyncSession, project: Project, parameters: DiaryExportParameters
    ) -> ReportDataset:
        diaries = await self._diaries(session, project, parameters)
        diary_dates = {d.id: d.diary_date for d in diaries}
        sections: dict[str, list[dict[str, Any]]] = {
            "daily_diaries": [self._diary_record(d) for d in diaries]
        }
        statistics: dict[str, Any] = {"total_diaries": len(diaries)}

        if parameters.include_labour:
            labour = await self._entries(session, DiaryLabourEntry, diaries)
            sections["labour"] = [
                {
                    "diary_date": diary_dates[e.diary_id],
                    "worker_name": e.worker_name,
                    "trade": e.trade,
                    "hours": _plain(e.hours),
                    "hourly_rate": _plain(e.hourly_rate),
                    "total_cost": _plain(e.total_cost),
                }
                for e in labour
            ]
            statistics["labour_entries"] = len(labour)
            statistics["labour_hours"] = float(sum((e.hours for e in labour), Decimal("0")))
        if parameters.include_plant:
            plant = await self._entries(session, DiaryPlantEntry, diaries)
            sections["plant"] = [
                {
                    "diary_date": diary_dates[e.diary_id],
                    "equipment": e.equipment,
                    "hours": _plain(e.hours),
                    "hourly_rate": _plain(e.hourly_rate),
                    "daily_rate": _plain(e.daily_rate),
                    "fuel_cost": _plain(e.fuel_cost),
                    "total_cost": _plain(e.total_cost),
                }
                for e in plant
            ]
            statistics["plant_entries"] = len(plant)
        if parameters.include_materials:
            materials = await self._entries(session, DiaryMaterialEntry, diaries)
            sections["materials"] = [
                {
                    "diary_date": diary_dates[e.diary_id],
                    "material": e.material,
                    "quantity": _plain(e.quantity),
                    "unit": e.unit,
                    "unit_cost": _plain(e.unit_cost),
                    "total_cost": _plain(e.total_cost),
                }
                for e in materials
            ]
            statistics["material_entries"] = len(materials)

        return ReportDataset(
            kind=ReportKind.DAILY_DIARY_EXPORT,
            title="Daily Diary Export",
            organization={},
            project={},
            statistics=statistics,
            sections=sections,
            preview_section="daily_diaries",
        )

    async def _inspection_summary(
        self, session: AsyncSession, project: Project, parameters: InspectionSummaryParameters
    ) -> ReportDataset:
        inspections = await self._inspections(
            session, project, parameters, lot_id=parameters.lot_id, result_filter=parameters.result
        )
        return ReportDataset(
            kind=ReportKind.INSPECTION_SUMMARY,
            title="Inspection Summary Report",
            organization={},
            project={},
            statistics=_inspection_stats(inspections),
            sections={"inspections": inspections},
            preview_section="inspections",
        )

    async def _ncr_report(
        self, session: AsyncSession, project: Project, parameters: NcrReportParameters
    ) -> ReportDataset:
        ncrs = await self._ncrs(
            session, project, parameters, statuses=parameters.statuses, severity=parameters.severity
        )
        statistics: dict[str, Any] = _ncr_stats(ncrs)
        for ncr in ncrs:
            key = f"{ncr['severity']}_ncrs"
            statistics[key] = statistics.get(key, 0) + 1
        return ReportDataset(
            kind=ReportKind.NCR_REPORT,
            title="NCR Report",
            organization={},
            project={},
            statistics=statistics,
            sections={"ncrs": ncrs},
            preview_section="ncrs",
        )

    async def _financial_summary(
        self, session: AsyncSession, project: Project, parameters: FinancialSummaryParameters
    ) -> ReportDataset:
        diaries = await self._diaries(session, project, parameters)
        labour = await self._entries(session, DiaryLabourEntry, diaries)
        plant = await self._entries(session, DiaryPlantEntry, diaries)
        materials = await self._entries(session, DiaryMaterialEntry, diaries)

        def totals(entries: Sequence[Any]) -> dict[UUID, Decimal]:
            by_diary: dict[UUID, Decimal] = {}
            for e in entries:
                by_diary[e.diary_id] = by_diary.get(e.diary_id, Decimal("0")) + _money(
                    e.total_cost
                )
            return by_diary

        labour_by, plant_by, material_by = totals(labour), totals(plant), totals(materials)
        daily_costs = []
        for diary in diaries:
            labour_cost = labour_by.get(diary.id, Decimal("0"))
            plant_cost = plant_by.get(diary.id, Decimal("0"))
            material_cost = material_by.get(diary.id, Decimal("0"))
            daily_costs.append(
                {
                    "diary_date": diary.diary_date,
                    "activities": diary.activities,
                    "labour_cost": float(labour_cost),
                    "plant_cost": float(plant_cost),
                    "material_cost": float(material_cost),
                    "total_cost": float(labour_cost + plant_cost + material_cost),
                }
            )

        labour_total = sum(labour_by.values(), Decimal("0"))
        plant_total = sum(plant_by.values(), Decimal("0"))
        material_total = sum(material_by.values(), Decimal("0"))
        return ReportDataset(
            kind=ReportKind.FINANCIAL_SUMMARY,
            title="Financial Summary Report",
            organization={},
            project={},
            statistics={
                "total_diaries": len(diaries),
                "labour_cost": float(labour_total),
                "plant_cost": float(plant_total),
                "material_cost": float(material_total),
                "total_cost": float(labour_total + plant_total + material_total),
            },
            sections={"daily_costs": daily_costs},
            preview_section="daily_costs",
        )

    async def _itp_report(
        self, session: AsyncSession, project: Project, parameters: ItpReportParameters
    ) -> ReportDataset:
        result = await session.execute(
            select(Inspection, Lot.lot_number)
            .join(Project, Project.id == Inspection.project_id)
            .outerjoin(Lot, Lot.id == Inspection.lot_id)
            .where(
                Inspection.id == parameters.inspection_id,
                Inspection.project_id == project.id,
                Project.organization_id == project.organization_id,
            )
        )
        row = result.first()
        if row is None:
            raise AggregationError(
                "Inspection not found",
                details={"inspection_id": str(parameters.inspection_id)},
            )
        inspection, lot_number = row
        items = [
            {
                "item": entry.get("item"),
                "result": entry.get("result"),
                "comment": entry.get("comment"),
                "inspection_date": inspection.inspection_date,
            }
            for entry in inspection.checklist_items
        ]
        return ReportDataset(
            kind=ReportKind.ITP_REPORT,
            title=f"ITP Report: {inspection.template_name}",
            organization={},
            project={},
            statistics={
                "checklist_items": len(items),
                "passed_items": sum(1 for i in items if i["result"] == "pass"),
                "failed_items": sum(1 for i in items if i["result"] == "fail"),
                "not_applicable_items": sum(1 for i in items if i["result"] == "na"),
            },
            sections={
                "inspection": [
                    {
                        "id": str(inspection.id),
                        "template_name": inspection.template_name,
                        "lot_number": lot_number,
                        "inspection_date": inspection.inspection_date,
                        "status": inspection.status,
                        "result": inspection.result,
                        "inspector_name": inspection.inspector_name,
                    }
                ],
                "checklist_items": items,
            },
            preview_section="checklist_items",
        )

    # =========================================================================
    # Redaction
    # =========================================================================

    @staticmethod
    def _apply_redaction(dataset: ReportDataset, role: Role | str | None) -> ReportDataset:
        dataset.sections = {name: redact(rows, role) for name, rows in dataset.sections.items()}
        dataset.statistics = redact(dataset.statistics, role)
        dataset.includes_financials = can_view_financials(role) and (
            has_sensitive_fields(dataset.sections) or has_sensitive_fields(dataset.statistics)
        )
        return dataset


