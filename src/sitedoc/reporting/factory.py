"""Wiring for the reporting components.

Everything is built from settings plus a session factory. Tests pass their
own blob store or submitter; nothing here is a module-level singleton.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitedoc.config.settings import Settings
from sitedoc.inspections.service import InspectionService
from sitedoc.reporting.aggregator import DataAggregator
from sitedoc.reporting.gateway import DownloadGateway
from sitedoc.reporting.indexer import ReportIndexer
from sitedoc.reporting.job import ReportGenerator, ReportJob
from sitedoc.reporting.renderers import RendererRegistry, create_renderer_registry
from sitedoc.reporting.runner import JobSubmitter, create_job_submitter
from sitedoc.reporting.service import ReportService
from sitedoc.reporting.storage import BlobStore, create_blob_store


@dataclass
class ReportingServices:
    """The reporting components of one application instance."""

    renderers: RendererRegistry
    generator: ReportGenerator
    blob_store: BlobStore
    job: ReportJob
    submitter: JobSubmitter
    reports: ReportService
    gateway: DownloadGateway
    indexer: ReportIndexer
    inspections: InspectionService


def create_reporting_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    blob_store: BlobStore | None = None,
    runner: str | None = None,
) -> ReportingServices:
    """Build the reporting components.

    Args:
        settings: Application settings; the ``reporting`` section is used
        session_factory: Session factory bound to the application database
        blob_store: Artifact store to use instead of the configured backend
        runner: ``background`` or ``inline``, overriding the configured runner
    """
    config = settings.reporting
    store = blob_store or create_blob_store(config.storage_backend, config.storage_dir)
    renderers = create_renderer_registry(preview_rows=config.preview_rows)
    generator = ReportGenerator(DataAggregator(session_factory), renderers)
    job = ReportJob(
        session_factory,
        generator,
        store,
        timeout_seconds=config.job_timeout_seconds,
        error_message_max_length=config.error_message_max_length,
    )
    submitter = create_job_submitter(
        runner or config.runner, job, session_factory, worker_count=config.worker_count
    )
    indexer = ReportIndexer(session_factory, lookback=config.index_lookback)

    return ReportingServices(
        renderers=renderers,
        generator=generator,
        blob_store=store,
        job=job,
        submitter=submitter,
        reports=ReportService(
            session_factory, submitter, store, expiry_days=config.expiry_days
        ),
        gateway=DownloadGateway(session_factory, generator, store),
        indexer=indexer,
        inspections=InspectionService(session_factory, indexer),
    )
