"""Inspection workflow endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, Depends

from sitedoc.api.dependencies import get_actor_id, get_inspection_service
from sitedoc.api.schemas.errors import APIError
from sitedoc.api.schemas.reports import InspectionFinalizeRequest, InspectionFinalizeResponse
from sitedoc.inspections.service import InspectionService

router = APIRouter(prefix="/inspections", tags=["inspections"])


@router.post(
    "/{inspection_id}/finalize",
    response_model=InspectionFinalizeResponse,
    summary="Finalize an inspection",
    description="Marks the inspection completed and catalogues its ITP report. "
    "Finalizing again refreshes the existing catalog entry.",
    responses={
        400: {"model": APIError, "description": "Invalid result"},
        404: {"model": APIError, "description": "Inspection not found"},
    },
)
async def finalize_inspection(
    inspection_id: UUID,
    actor_id: Annotated[UUID, Depends(get_actor_id)],
    service: Annotated[InspectionService, Depends(get_inspection_service)],
    body: Annotated[InspectionFinalizeRequest | None, Body()] = None,
) -> InspectionFinalizeResponse:
    inspection = await service.finalize(
        inspection_id, actor_id, result=body.result if body else None
    )
    return InspectionFinalizeResponse(
        inspection_id=inspection.id,
        status=inspection.status,
        result=inspection.result,
        finalized_at=inspection.finalized_at,
    )
