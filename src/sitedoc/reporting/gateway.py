"""Download gateway: the read and delete paths for report requests.

Lookups are scoped to every organization the requester belongs to. A
report outside those organizations raises the same ``ReportNotFoundError``
as an id that does not exist.

Stored artifacts are a cache. The gateway renders on the fly when a
different format is asked for, when the store does not hold the recorded
location (catalog pointers, lost blobs), and when the stored artifact
carries financial fields the downloader may not see. Regeneration never
writes to the report row.
"""

from dataclasses import dataclass
from pathlib import PurePosixPath
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitedoc.core.audit import record_audit_event
from sitedoc.core.error_handling import best_effort
from sitedoc.core.exceptions import (
    AccessDeniedError,
    ReportFailedError,
    ReportNotFoundError,
    StorageError,
    UnsupportedFormatError,
)
from sitedoc.core.logging import get_logger
from sitedoc.db.models.audit import AuditEventType
from sitedoc.db.models.report import ReportRequest
from sitedoc.db.repositories.membership import MembershipRepository
from sitedoc.db.repositories.report import ReportRequestRepository
from sitedoc.observability.metrics import record_download
from sitedoc.reporting.job import ReportGenerator, check_kind_access, slugify
from sitedoc.reporting.permissions import can_delete_report, can_view_financials
from sitedoc.reporting.state import PENDING_STATUSES
from sitedoc.reporting.storage import BlobStore
from sitedoc.reporting.types import ReportFormat, ReportKind, ReportStatus, parse_parameters

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReportNotReady:
    """A report that exists but has not finished; poll again later."""

    report_id: UUID
    status: ReportStatus
    progress: int
    current_step: str | None = None


@dataclass(frozen=True)
class DownloadResult:
    content: bytes
    filename: str
    mime_type: str
    regenerated: bool = False


async def load_report_for(
    session: AsyncSession, report_id: UUID, user_id: UUID
) -> tuple[ReportRequest, str]:
    """Report and the user's role in its organization.

    Raises:
        ReportNotFoundError: If the report does not exist or belongs to an
            organization the user is not a member of
    """
    roles = await MembershipRepository(session).roles_for_user(user_id)
    report = await ReportRequestRepository(session).get_for_organizations(report_id, list(roles))
    if report is None:
        raise ReportNotFoundError(report_id)
    return report, roles[report.organization_id]


def parse_format(value: ReportFormat | str) -> ReportFormat:
    try:
        return ReportFormat(value)
    except ValueError:
        raise UnsupportedFormatError(str(value)) from None


class DownloadGateway:
    """Serves, regenerates and deletes report artifacts."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        generator: ReportGenerator,
        blob_store: BlobStore,
    ):
        self._session_factory = session_factory
        self.generator = generator
        self.blob_store = blob_store

    async def download(
        self,
        report_id: UUID,
        requester_id: UUID,
        format_override: ReportFormat | str | None = None,
    ) -> DownloadResult | ReportNotReady:
        """Artifact bytes for a completed report.

        Returns:
            The artifact, or ``ReportNotReady`` while the report is queued or
            processing

        Raises:
            ReportNotFoundError: Unknown id, or a report in a foreign organization
            ReportFailedError: The report's job failed; carries the recorded message
            AccessDeniedError: The requester may not see this report kind
            UnsupportedFormatError: The override names no known format
        """
        requested_format = parse_format(format_override) if format_override else None

        async with self._session_factory() as session:
            report, role = await load_report_for(session, report_id, requester_id)

        status = ReportStatus(report.status)
        if status in PENDING_STATUSES:
            return ReportNotReady(report.id, status, report.progress, report.current_step)
        if status is ReportStatus.FAILED:
            raise ReportFailedError(report.id, report.error_message)

        kind = ReportKind(report.kind)
        check_kind_access(kind, role)
        stored_format = ReportFormat(report.format)
        output_format = requested_format or stored_format
        renderer = self.generator.renderer_for(output_format)

        content: bytes | None = None
        withheld = report.includes_financials and not can_view_financials(role)
        if output_format is stored_format and not withheld and report.file_location:
            content = await self.blob_store.get(report.file_location)

        regenerated = content is None
        if content is None:
            parameters = parse_parameters(kind, report.parameters)
            _, artifact = await self.generator.generate(
                report.organization_id, parameters, output_format, role
            )
            content, mime_type = artifact.content, artifact.mime_type
        else:
            mime_type = report.mime_type or renderer.mime_type

        stem = PurePosixPath(report.file_name).stem if report.file_name else slugify(report.name)
        filename = f"{stem}.{renderer.extension}"

        record_download(output_format.value, "regenerated" if regenerated else "stored")
        logger.info(
            "Report downloaded",
            report_id=str(report.id),
            organization_id=str(report.organization_id),
            format=output_format.value,
            regenerated=regenerated,
        )
        async with best_effort("audit_report_downloaded", report_id=str(report.id)):
            await record_audit_event(
                self._session_factory,
                AuditEventType.REPORT_DOWNLOADED,
                organization_id=report.organization_id,
                resource_type="report",
                resource_id=report.id,
                event_data={"format": output_format.value, "regenerated": regenerated},
                user_id=requester_id,
            )

        return DownloadResult(content, filename, mime_type, regenerated)

    async def delete(self, report_id: UUID, requester_id: UUID) -> None:
        """Delete a report row and its stored artifact.

        The row removal is flushed but not committed until the artifact is
        gone, so a storage failure leaves both in place. A commit that fails
        after the artifact is gone leaves the row behind without its blob;
        that is logged as an error and re-raised, and a later download of
        the row regenerates the artifact.

        Raises:
            ReportNotFoundError: Unknown id, or a report in a foreign organization
            AccessDeniedError: Requester is neither the original requester
                nor an organization owner/admin
            StorageError: The artifact could not be removed
            SQLAlchemyError: The row removal could not be committed
        """
        async with self._session_factory() as session:
            report, role = await load_report_for(session, report_id, requester_id)
            if not can_delete_report(role, report.requested_by, requester_id):
                raise AccessDeniedError(
                    "only the requester or an organization owner or admin may delete a report",
                    details={"report_id": str(report_id)},
                )

            organization_id = report.organization_id
            location = report.file_location
            status = report.status
            await ReportRequestRepository(session).delete(report, commit=False)

            if location:
                try:
                    await self.blob_store.delete(location)
                except StorageError as e:
                    await session.rollback()
                    logger.error(
                        "Report artifact removal failed; delete rolled back",
                        report_id=str(report_id),
                        location=location,
                        error=e.message,
                    )
                    raise

            try:
                await session.commit()
            except SQLAlchemyError as e:
                logger.error(
                    "Report row delete failed after artifact removal",
                    report_id=str(report_id),
                    location=location,
                    error=str(e),
                )
                raise

        logger.info(
            "Report deleted",
            report_id=str(report_id),
            organization_id=str(organization_id),
            status=status,
        )
        async with best_effort("audit_report_deleted", report_id=str(report_id)):
            await record_audit_event(
                self._session_factory,
                AuditEventType.REPORT_DELETED,
                organization_id=organization_id,
                resource_type="report",
                resource_id=report_id,
                event_data={"status": status},
                user_id=requester_id,
            )
