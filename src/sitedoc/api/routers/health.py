"""Liveness, readiness and Prometheus endpoints. None require authentication."""

import time
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sitedoc import __version__
from sitedoc.api.schemas.health import (
    ComponentHealth,
    HealthDetailResponse,
    HealthResponse,
    HealthStatus,
    ReadinessResponse,
    worst_status,
)
from sitedoc.db.config import get_db
from sitedoc.observability import get_metrics
from sitedoc.reporting.factory import ReportingServices
from sitedoc.reporting.runner import BackgroundJobRunner

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness",
    description="200 whenever the process is serving requests.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        version=__version__,
        timestamp=datetime.now(UTC),
    )


@router.get(
    "/health/db",
    response_model=HealthDetailResponse,
    summary="Database connectivity",
    description="Runs a trivial query against the report database.",
)
async def health_db(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> HealthDetailResponse:
    db_health = await _check_database(db)
    return HealthDetailResponse(
        status=db_health.status,
        version=__version__,
        timestamp=datetime.now(UTC),
        database=db_health,
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description=(
        "Checks the database and the report workers. Answers 503 when reports "
        "cannot be processed."
    ),
    responses={503: {"model": ReadinessResponse}},
)
async def health_ready(
    request: Request,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ReadinessResponse:
    db_health = await _check_database(db)
    reporting_health = _check_reporting(getattr(request.app.state, "reporting", None))
    status = worst_status(db_health, reporting_health)
    if status == HealthStatus.UNHEALTHY:
        response.status_code = 503
    return ReadinessResponse(
        status=status,
        version=__version__,
        timestamp=datetime.now(UTC),
        database=db_health,
        reporting=reporting_health,
    )


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Report job, download and API metrics in the text exposition format.",
    response_class=Response,
)
async def metrics() -> Response:
    return Response(content=get_metrics(), media_type=CONTENT_TYPE_LATEST)


async def _check_database(db: AsyncSession) -> ComponentHealth:
    start = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message=f"Database unreachable: {str(e)[:100]}",
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )
    return ComponentHealth(
        status=HealthStatus.HEALTHY,
        message="Database reachable",
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
    )


def _check_reporting(reporting: ReportingServices | None) -> ComponentHealth:
    if reporting is None:
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message="Reporting services not started",
        )

    details = {"storage": type(reporting.blob_store).__name__}
    submitter = reporting.submitter
    if not isinstance(submitter, BackgroundJobRunner):
        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            message="Reports are generated inline",
            details={**details, "runner": "inline"},
        )

    details.update(
        runner="background", workers=submitter.worker_count, pending=submitter.pending
    )
    if not submitter.is_running:
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message="Report workers are not running",
            details=details,
        )
    return ComponentHealth(
        status=HealthStatus.HEALTHY,
        message=f"{submitter.worker_count} report workers running",
        details=details,
    )
