"""Job submission for report requests.

Components that enqueue work receive a ``JobSubmitter``; nothing constructs
one at import time. The background runner's lifecycle is tied to the
application's startup and shutdown.
"""

import asyncio
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitedoc.core.logging import get_logger, log_exception
from sitedoc.db.repositories.report import ReportRequestRepository
from sitedoc.observability.metrics import set_queue_depth
from sitedoc.reporting.job import ReportJob
from sitedoc.utils.exceptions import ConfigurationError

logger = get_logger(__name__)


@runtime_checkable
class JobSubmitter(Protocol):
    """Accepts report ids for processing."""

    async def submit(self, report_id: UUID) -> None: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


class InlineJobSubmitter:
    """Runs each job to completion inside ``submit``.

    Used by tests and by single-shot tools where the caller wants the
    terminal status before continuing.
    """

    def __init__(self, job: ReportJob):
        self.job = job

    async def submit(self, report_id: UUID) -> None:
        await self.job.run(report_id)

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None


class BackgroundJobRunner:
    """In-process worker pool fed by an asyncio queue.

    Each submitted id is handled by one worker. The claim inside
    ``ReportJob.run`` decides ownership, so an id submitted twice is
    processed once.
    """

    def __init__(
        self,
        job: ReportJob,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        worker_count: int = 2,
    ):
        if worker_count < 1:
            raise ConfigurationError("worker_count must be at least 1")
        self.job = job
        self._session_factory = session_factory
        self.worker_count = worker_count
        self._queue: asyncio.Queue[UUID] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        """Ids submitted but not yet picked up by a worker."""
        return self._queue.qsize()

    async def submit(self, report_id: UUID) -> None:
        await self._queue.put(report_id)
        set_queue_depth(self._queue.qsize())

    async def start(self) -> None:
        """Start workers and re-submit requests left ``queued`` by a previous process."""
        if self._running:
            logger.warning("Report runner already running")
            return

        self._running = True
        for index in range(self.worker_count):
            self._workers.append(
                asyncio.create_task(self._worker(), name=f"report_worker_{index}")
            )

        async with self._session_factory() as session:
            pending = await ReportRequestRepository(session).queued_ids()
        for report_id in pending:
            await self.submit(report_id)

        logger.info(
            "Report runner started",
            worker_count=self.worker_count,
            resubmitted=len(pending),
        )

    async def stop(self) -> None:
        """Cancel the workers. Jobs cut short are recorded as failed by the job."""
        if not self._running:
            return

        self._running = False
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        logger.info("Report runner stopped", unprocessed=self._queue.qsize())

    async def join(self) -> None:
        """Wait until every submitted id has been processed."""
        await self._queue.join()

    async def _worker(self) -> None:
        while True:
            report_id = await self._queue.get()
            set_queue_depth(self._queue.qsize())
            try:
                await self.job.run(report_id)
            except Exception as e:
                log_exception(logger, e, "Report worker error", report_id=str(report_id))
            finally:
                self._queue.task_done()


def create_job_submitter(
    runner: str,
    job: ReportJob,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    worker_count: int = 2,
) -> JobSubmitter:
    """Submitter for the configured runner (``background`` or ``inline``)."""
    if runner == "inline":
        return InlineJobSubmitter(job)
    if runner == "background":
        return BackgroundJobRunner(job, session_factory, worker_count=worker_count)
    raise ConfigurationError(f"Unknown report runner: {runner}")
