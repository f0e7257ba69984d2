"""Report job: aggregate, render and store one report request.

A job claims its row with a single conditional update (``queued`` to
``processing``). A worker that loses the claim does nothing more. After a
successful claim every path ends in a terminal status: ``completed`` once
the artifact is stored and recorded, or ``failed`` with a bounded,
human-readable message. Artifacts stored by a job that then fails are
removed again.
"""

import asyncio
import re
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitedoc.core.context import job_context, request_context
from sitedoc.core.error_handling import bound_error_message, describe_failure
from sitedoc.core.exceptions import (
    AccessDeniedError,
    InvalidTransitionError,
    RenderingError,
    ReportError,
)
from sitedoc.core.logging import bound_log_fields, get_logger
from sitedoc.db.models.report import ReportRequest
from sitedoc.db.repositories.membership import MembershipRepository
from sitedoc.db.repositories.report import ReportRequestRepository
from sitedoc.observability.metrics import observe_report_job, record_artifact
from sitedoc.reporting.aggregator import DataAggregator
from sitedoc.reporting.permissions import can_view_financials
from sitedoc.reporting.renderers.base import Renderer, RendererRegistry
from sitedoc.reporting.storage import BlobStore, artifact_key
from sitedoc.reporting.types import (
    RenderedArtifact,
    ReportDataset,
    ReportFormat,
    ReportKind,
    ReportParameters,
    ReportStatus,
    Role,
    parse_parameters,
)

logger = get_logger(__name__)

STEP_INITIALIZING = "Initializing report generation"
STEP_AGGREGATING = "Aggregating data"
STEP_STORING = "Storing report file"


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-") or "report"


def build_file_name(kind: ReportKind, subject: str, extension: str, when: datetime) -> str:
    """``<kind>-<subject>-<yyyymmdd-HHMMSS>.<ext>``, e.g. ``project-summary-harbour-...pdf``."""
    return f"{slugify(kind.value)}-{slugify(subject)}-{when:%Y%m%d-%H%M%S}.{extension}"


# =============================================================================
# Generation
# =============================================================================


class ReportGenerator:
    """Aggregation followed by rendering, shared by jobs and on-demand downloads."""

    def __init__(self, aggregator: DataAggregator, renderers: RendererRegistry):
        self.aggregator = aggregator
        self.renderers = renderers

    def renderer_for(self, output_format: ReportFormat | str) -> Renderer:
        return self.renderers.get(output_format)

    async def aggregate(
        self, organization_id: UUID, parameters: ReportParameters, role: Role | str | None
    ) -> ReportDataset:
        return await self.aggregator.aggregate(organization_id, parameters, role)

    async def render(self, renderer: Renderer, dataset: ReportDataset) -> RenderedArtifact:
        """Render off the event loop; unexpected renderer errors become RenderingError."""
        try:
            return await asyncio.to_thread(renderer.render, dataset)
        except ReportError:
            raise
        except Exception as e:
            logger.exception(
                "Renderer raised",
                format=renderer.format.value,
                kind=dataset.kind.value,
            )
            raise RenderingError(renderer.format.value, type(e).__name__) from e

    async def generate(
        self,
        organization_id: UUID,
        parameters: ReportParameters,
        output_format: ReportFormat | str,
        role: Role | str | None,
    ) -> tuple[ReportDataset, RenderedArtifact]:
        renderer = self.renderer_for(output_format)
        dataset = await self.aggregate(organization_id, parameters, role)
        return dataset, await self.render(renderer, dataset)


def check_kind_access(kind: ReportKind, role: Role | str | None) -> None:
    """Raise AccessDeniedError if ``role`` may not generate ``kind``."""
    if role is None:
        raise AccessDeniedError("requester is not a member of the organization")
    if kind is ReportKind.FINANCIAL_SUMMARY and not can_view_financials(role):
        raise AccessDeniedError(
            "financial summary requires a financial access role",
            details={"kind": kind.value, "role": str(role)},
        )


# =============================================================================
# Job
# =============================================================================


class ReportJob:
    """Runs report requests through ``queued -> processing -> completed | failed``."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        generator: ReportGenerator,
        blob_store: BlobStore,
        *,
        timeout_seconds: float = 60.0,
        error_message_max_length: int = 500,
    ):
        self._session_factory = session_factory
        self.generator = generator
        self.blob_store = blob_store
        self.timeout_seconds = timeout_seconds
        self.error_message_max_length = error_message_max_length

    async def run(self, report_id: UUID) -> ReportStatus | None:
        """Process one report request.

        Returns:
            The terminal status reached, or None if the request was not
            claimable (already claimed, finished or deleted)
        """
        async with self._session_factory() as session:
            repo = ReportRequestRepository(session)
            if not await repo.claim(report_id, STEP_INITIALIZING):
                logger.info("Report not claimable, skipping", report_id=str(report_id))
                return None

            report = await repo.get(report_id)
            if report is None:
                # Deleted between claim and load
                return None

            kind, output_format = report.kind, report.format
            with (
                request_context(job_context(report_id, report.requested_by)),
                bound_log_fields(kind=kind, format=output_format),
                observe_report_job(kind, output_format) as metric,
            ):
                logger.info("Report job started", organization_id=str(report.organization_id))
                stored: list[str] = []
                try:
                    async with asyncio.timeout(self.timeout_seconds):
                        await self._generate(session, repo, report, stored)
                except asyncio.CancelledError:
                    metric["status"] = ReportStatus.FAILED.value
                    await asyncio.shield(
                        self._fail(
                            session, repo, report_id, "Report generation was cancelled", stored
                        )
                    )
                    raise
                except Exception as exc:
                    metric["status"] = ReportStatus.FAILED.value
                    if isinstance(exc, ReportError):
                        logger.warning(
                            "Report job failed", error_code=exc.code, error=exc.message
                        )
                    else:
                        logger.exception("Report job failed unexpectedly")
                    await self._fail(session, repo, report_id, describe_failure(exc), stored)
                    return ReportStatus.FAILED

                metric["status"] = ReportStatus.COMPLETED.value
                logger.info("Report job completed")
                return ReportStatus.COMPLETED

    async def _generate(
        self,
        session: AsyncSession,
        repo: ReportRequestRepository,
        report: ReportRequest,
        stored: list[str],
    ) -> None:
        kind = ReportKind(report.kind)
        parameters = parse_parameters(kind, report.parameters)
        role = await MembershipRepository(session).role_in(
            report.organization_id, report.requested_by
        )
        # Checked before any data is read
        check_kind_access(kind, role)
        renderer = self.generator.renderer_for(report.format)

        await repo.update_progress(report.id, 30, STEP_AGGREGATING)
        dataset = await self.generator.aggregate(report.organization_id, parameters, role)

        await repo.update_progress(report.id, 50, f"Rendering {renderer.format.value}")
        artifact = await self.generator.render(renderer, dataset)

        await repo.update_progress(report.id, 80, STEP_STORING)
        file_name = build_file_name(
            kind, dataset.project.get("name", ""), artifact.extension, datetime.now(UTC)
        )
        location = await self.blob_store.put(
            artifact_key(report.organization_id, parameters.project_id, report.id, file_name),
            artifact.content,
            artifact.mime_type,
        )
        stored.append(location)

        completed = await repo.mark_completed(
            report.id,
            file_location=location,
            file_name=file_name,
            file_size=artifact.size_bytes,
            mime_type=artifact.mime_type,
            includes_financials=dataset.includes_financials,
        )
        if not completed:
            raise InvalidTransitionError(
                report.id, "not processing", ReportStatus.COMPLETED.value
            )
        record_artifact(renderer.format.value, artifact.size_bytes)

    async def _fail(
        self,
        session: AsyncSession,
        repo: ReportRequestRepository,
        report_id: UUID,
        message: str,
        stored: list[str],
    ) -> None:
        # Rollback expires loaded rows, so only the id is used from here on
        await session.rollback()
        for location in stored:
            try:
                await self.blob_store.delete(location)
            except ReportError as e:
                logger.error(
                    "Failed to remove artifact of failed report",
                    report_id=str(report_id),
                    location=location,
                    error=e.message,
                )
        await repo.mark_failed(
            report_id, bound_error_message(message, self.error_message_max_length)
        )
