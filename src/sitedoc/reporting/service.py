"""Report intake, status queries and administrative retry."""

from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitedoc.core.audit import MAX_QUERY_LIMIT, AuditLogger, record_audit_event
from sitedoc.core.error_handling import best_effort
from sitedoc.core.exceptions import (
    AccessDeniedError,
    InvalidParametersError,
    InvalidTransitionError,
    ReportNotFoundError,
)
from sitedoc.core.logging import get_logger
from sitedoc.db.models.audit import AuditEvent, AuditEventType
from sitedoc.db.models.base import utcnow
from sitedoc.db.models.report import ReportRequest
from sitedoc.db.models.site import Project
from sitedoc.db.repositories.membership import MembershipRepository
from sitedoc.db.repositories.report import ReportRequestRepository
from sitedoc.reporting.gateway import load_report_for, parse_format
from sitedoc.reporting.permissions import can_reset_report, can_view_audit_trail
from sitedoc.reporting.runner import JobSubmitter
from sitedoc.reporting.state import can_transition
from sitedoc.reporting.storage import BlobStore
from sitedoc.reporting.types import ReportKind, ReportStatus, dump_parameters, parse_parameters

logger = get_logger(__name__)

MAX_PAGE_SIZE = 200


def _parse_enum(enum_cls: type, value: str, label: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidParametersError(
            f"Unknown {label}: {value}", details={label: value}
        ) from None


class ReportService:
    """Entry point for creating and querying report requests.

    Validation happens before anything is written: an invalid kind, format
    or parameter map, a requester outside the organization, or a project
    the organization does not own is rejected without creating a row.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        submitter: JobSubmitter,
        blob_store: BlobStore,
        *,
        expiry_days: int = 30,
    ):
        self._session_factory = session_factory
        self.submitter = submitter
        self.blob_store = blob_store
        self.expiry_days = expiry_days

    async def request_report(
        self,
        organization_id: UUID,
        kind: ReportKind | str,
        output_format: str,
        parameters: dict[str, Any] | None,
        requested_by: UUID,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> ReportRequest:
        """Create a queued report request and hand it to the job submitter.

        Returns:
            The report row as it stands after submission

        Raises:
            InvalidParametersError: Unknown or unsupported kind, invalid
                parameters, or a project outside the organization
            UnsupportedFormatError: Unknown output format
            AccessDeniedError: Requester is not a member of the organization
        """
        report_kind = _parse_enum(ReportKind, kind, "kind")
        report_format = parse_format(output_format)
        typed = parse_parameters(report_kind, parameters)

        async with self._session_factory() as session:
            role = await MembershipRepository(session).role_in(organization_id, requested_by)
            if role is None:
                raise AccessDeniedError(
                    "requester is not a member of the organization",
                    details={"organization_id": str(organization_id)},
                )

            project = (
                await session.execute(
                    select(Project).where(
                        Project.id == typed.project_id,
                        Project.organization_id == organization_id,
                    )
                )
            ).scalar_one_or_none()
            if project is None:
                raise InvalidParametersError(
                    "Project not found in organization",
                    details={"project_id": str(typed.project_id)},
                )

            now = utcnow()
            report = await ReportRequestRepository(session).create(
                ReportRequest(
                    organization_id=organization_id,
                    kind=report_kind.value,
                    format=report_format.value,
                    name=name or f"{report_kind.label} - {project.name}",
                    description=description,
                    parameters=dump_parameters(typed),
                    status=ReportStatus.QUEUED.value,
                    progress=0,
                    requested_by=requested_by,
                    requested_at=now,
                    expires_at=now + timedelta(days=self.expiry_days),
                )
            )
            report_id = report.id

        logger.info(
            "Report requested",
            report_id=str(report_id),
            organization_id=str(organization_id),
            kind=report_kind.value,
            format=report_format.value,
        )
        async with best_effort("audit_report_requested", report_id=str(report_id)):
            await record_audit_event(
                self._session_factory,
                AuditEventType.REPORT_REQUESTED,
                organization_id=organization_id,
                resource_type="report",
                resource_id=report_id,
                event_data={"kind": report_kind.value, "format": report_format.value},
                user_id=requested_by,
            )

        await self.submitter.submit(report_id)
        return await self._reload(report_id)

    async def get_report(self, report_id: UUID, user_id: UUID) -> ReportRequest:
        """Status document for one report.

        Raises:
            ReportNotFoundError: Unknown id, or a report in a foreign organization
        """
        async with self._session_factory() as session:
            report, _ = await load_report_for(session, report_id, user_id)
            return report

    async def list_reports(
        self,
        organization_id: UUID,
        user_id: UUID,
        *,
        requested_by: UUID | None = None,
        status: str | None = None,
        kind: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ReportRequest]:
        """Reports of one organization, newest first.

        Raises:
            AccessDeniedError: The user is not a member of the organization
            InvalidParametersError: Unknown status or kind filter
        """
        status_filter = _parse_enum(ReportStatus, status, "status").value if status else None
        kind_filter = _parse_enum(ReportKind, kind, "kind").value if kind else None

        async with self._session_factory() as session:
            role = await MembershipRepository(session).role_in(organization_id, user_id)
            if role is None:
                raise AccessDeniedError(
                    "not a member of the organization",
                    details={"organization_id": str(organization_id)},
                )
            return await ReportRequestRepository(session).list_for_organization(
                organization_id,
                requested_by=requested_by,
                status=status_filter,
                kind=kind_filter,
                limit=max(1, min(limit, MAX_PAGE_SIZE)),
                offset=max(0, offset),
            )

    async def reset_for_retry(self, report_id: UUID, user_id: UUID) -> ReportRequest:
        """Administrative reset of a completed or failed report back to ``queued``.

        Raises:
            ReportNotFoundError: Unknown id, or a report in a foreign organization
            AccessDeniedError: The user is not an organization owner or admin
            InvalidTransitionError: The report is still queued or processing
        """
        async with self._session_factory() as session:
            report, role = await load_report_for(session, report_id, user_id)
            if not can_reset_report(role):
                raise AccessDeniedError(
                    "only an organization owner or admin may retry a report",
                    details={"report_id": str(report_id)},
                )
            current = ReportStatus(report.status)
            if not can_transition(current, ReportStatus.QUEUED, administrative=True):
                raise InvalidTransitionError(report_id, current.value, ReportStatus.QUEUED.value)

            location = report.file_location
            organization_id = report.organization_id
            if not await ReportRequestRepository(session).reset_for_retry(report_id):
                raise InvalidTransitionError(report_id, current.value, ReportStatus.QUEUED.value)

        logger.info(
            "Report reset for retry",
            report_id=str(report_id),
            previous_status=current.value,
        )
        if location:
            async with best_effort("remove_superseded_artifact", report_id=str(report_id)):
                await self.blob_store.delete(location)
        async with best_effort("audit_report_retried", report_id=str(report_id)):
            await record_audit_event(
                self._session_factory,
                AuditEventType.REPORT_RETRIED,
                organization_id=organization_id,
                resource_type="report",
                resource_id=report_id,
                event_data={"previous_status": current.value},
                user_id=user_id,
            )

        await self.submitter.submit(report_id)
        return await self._reload(report_id)

    async def audit_trail(
        self, report_id: UUID, user_id: UUID, *, limit: int = 100
    ) -> list[AuditEvent]:
        """Audit entries recorded against one report, newest first.

        Raises:
            ReportNotFoundError: Unknown id, or a report in a foreign organization
            AccessDeniedError: The user is not an organization owner or admin
        """
        async with self._session_factory() as session:
            report, role = await load_report_for(session, report_id, user_id)
            if not can_view_audit_trail(role):
                raise AccessDeniedError(
                    "only an organization owner or admin may read the audit trail",
                    details={"report_id": str(report_id)},
                )
            return await AuditLogger(session).query_events(
                organization_id=report.organization_id,
                resource_id=str(report_id),
                limit=max(1, min(limit, MAX_QUERY_LIMIT)),
            )

    async def _reload(self, report_id: UUID) -> ReportRequest:
        async with self._session_factory() as session:
            report = await ReportRequestRepository(session).get(report_id)
        if report is None:
            # Deleted while being submitted
            raise ReportNotFoundError(report_id)
        return report
