"""Report API endpoints.

This module provides REST API endpoints for report operations:
- POST /v1/reports - Request a new report
- GET /v1/reports - List an organization's reports
- GET /v1/reports/{report_id} - Get report status
- GET /v1/reports/{report_id}/download - Download the artifact
- DELETE /v1/reports/{report_id} - Delete a report and its artifact
- POST /v1/reports/{report_id}/retry - Administrative reset to queued
- GET /v1/reports/{report_id}/audit - Audit entries for one report
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse

from sitedoc.api.dependencies import get_actor_id, get_download_gateway, get_report_service
from sitedoc.api.schemas.errors import APIError
from sitedoc.api.schemas.reports import (
    AuditEventResponse,
    ReportAcceptedResponse,
    ReportAuditTrailResponse,
    ReportCreateRequest,
    ReportDeleteResponse,
    ReportListResponse,
    ReportNotReadyResponse,
    ReportResponse,
)
from sitedoc.core.logging import get_logger
from sitedoc.reporting.gateway import DownloadGateway, ReportNotReady
from sitedoc.reporting.service import MAX_PAGE_SIZE, ReportService

logger = get_logger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


def content_disposition(filename: str) -> str:
    safe = filename.replace('"', "").replace("\r", "").replace("\n", "")
    return f'attachment; filename="{safe}"'


@router.post(
    "",
    response_model=ReportAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request a report",
    description="""
    Queue a report for generation.

    The report is produced asynchronously. Poll `GET /v1/reports/{report_id}`
    for progress, then fetch the artifact from the download endpoint.
    """,
    responses={
        400: {"model": APIError, "description": "Invalid parameters or format"},
        403: {"model": APIError, "description": "Not a member of the organization"},
    },
)
async def request_report(
    body: ReportCreateRequest,
    actor_id: Annotated[UUID, Depends(get_actor_id)],
    service: Annotated[ReportService, Depends(get_report_service)],
) -> ReportAcceptedResponse:
    report = await service.request_report(
        body.organization_id,
        body.kind,
        body.format,
        body.parameters,
        actor_id,
        name=body.name,
        description=body.description,
    )
    return ReportAcceptedResponse(report_id=report.id, status=report.status)


@router.get(
    "",
    response_model=ReportListResponse,
    summary="List reports",
    responses={
        400: {"model": APIError, "description": "Unknown status or kind filter"},
        403: {"model": APIError, "description": "Not a member of the organization"},
    },
)
async def list_reports(
    actor_id: Annotated[UUID, Depends(get_actor_id)],
    service: Annotated[ReportService, Depends(get_report_service)],
    organization_id: Annotated[UUID, Query(description="Organization to list")],
    requested_by: Annotated[UUID | None, Query()] = None,
    report_status: Annotated[str | None, Query(alias="status")] = None,
    kind: Annotated[str | None, Query()] = None,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ReportListResponse:
    """Newest-first reports of one organization."""
    rows = await service.list_reports(
        organization_id,
        actor_id,
        requested_by=requested_by,
        status=report_status,
        kind=kind,
        limit=limit,
        offset=offset,
    )
    return ReportListResponse(
        reports=[ReportResponse.from_row(row) for row in rows],
        count=len(rows),
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{report_id}",
    response_model=ReportResponse,
    summary="Get report status",
    responses={404: {"model": APIError, "description": "Report not found"}},
)
async def get_report(
    report_id: UUID,
    actor_id: Annotated[UUID, Depends(get_actor_id)],
    service: Annotated[ReportService, Depends(get_report_service)],
) -> ReportResponse:
    return ReportResponse.from_row(await service.get_report(report_id, actor_id))


@router.get(
    "/{report_id}/download",
    summary="Download a report",
    description="""
    Returns the artifact bytes with `Content-Disposition: attachment`.

    While the report is queued or processing the response is 202 with the
    current status and progress. A failed report answers 409 with the
    recorded failure message. Pass `format` to receive the report in another
    format; it is rendered on demand.
    """,
    response_class=Response,
    responses={
        200: {"description": "Report artifact"},
        202: {"model": ReportNotReadyResponse, "description": "Not ready yet"},
        403: {"model": APIError, "description": "Report kind not permitted"},
        404: {"model": APIError, "description": "Report not found"},
        409: {"model": APIError, "description": "Report generation failed"},
    },
)
async def download_report(
    report_id: UUID,
    actor_id: Annotated[UUID, Depends(get_actor_id)],
    gateway: Annotated[DownloadGateway, Depends(get_download_gateway)],
    output_format: Annotated[str | None, Query(alias="format")] = None,
) -> Response:
    result = await gateway.download(report_id, actor_id, output_format)
    if isinstance(result, ReportNotReady):
        body = ReportNotReadyResponse(
            report_id=result.report_id,
            status=result.status.value,
            progress=result.progress,
            current_step=result.current_step,
        )
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=body.model_dump(mode="json"),
            headers={"Retry-After": "2"},
        )

    return Response(
        content=result.content,
        media_type=result.mime_type,
        headers={"Content-Disposition": content_disposition(result.filename)},
    )


@router.delete(
    "/{report_id}",
    response_model=ReportDeleteResponse,
    summary="Delete a report",
    responses={
        403: {"model": APIError, "description": "Not the requester or an admin"},
        404: {"model": APIError, "description": "Report not found"},
    },
)
async def delete_report(
    report_id: UUID,
    actor_id: Annotated[UUID, Depends(get_actor_id)],
    gateway: Annotated[DownloadGateway, Depends(get_download_gateway)],
) -> ReportDeleteResponse:
    await gateway.delete(report_id, actor_id)
    return ReportDeleteResponse(success=True)


@router.post(
    "/{report_id}/retry",
    response_model=ReportResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Retry a report",
    description="Reset a completed or failed report to queued and run it again. "
    "Organization owners and admins only.",
    responses={
        403: {"model": APIError, "description": "Not an owner or admin"},
        404: {"model": APIError, "description": "Report not found"},
        409: {"model": APIError, "description": "Report is still in progress"},
    },
)
async def retry_report(
    report_id: UUID,
    actor_id: Annotated[UUID, Depends(get_actor_id)],
    service: Annotated[ReportService, Depends(get_report_service)],
) -> ReportResponse:
    return ReportResponse.from_row(await service.reset_for_retry(report_id, actor_id))


@router.get(
    "/{report_id}/audit",
    response_model=ReportAuditTrailResponse,
    summary="Report audit trail",
    description="Requests, downloads and retries recorded against a report. "
    "Organization owners and admins only.",
    responses={
        403: {"model": APIError, "description": "Not an owner or admin"},
        404: {"model": APIError, "description": "Report not found"},
    },
)
async def report_audit_trail(
    report_id: UUID,
    actor_id: Annotated[UUID, Depends(get_actor_id)],
    service: Annotated[ReportService, Depends(get_report_service)],
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> ReportAuditTrailResponse:
    events = await service.audit_trail(report_id, actor_id, limit=limit)
    return ReportAuditTrailResponse(
        report_id=report_id,
        events=[AuditEventResponse.from_row(event) for event in events],
    )
