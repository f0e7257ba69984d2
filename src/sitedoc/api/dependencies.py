"""FastAPI dependencies for the v1 endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Request

from sitedoc.core.exceptions import AuthenticationError
from sitedoc.inspections.service import InspectionService
from sitedoc.reporting.factory import ReportingServices
from sitedoc.reporting.gateway import DownloadGateway
from sitedoc.reporting.service import ReportService

__all__ = [
    "get_actor_id",
    "get_reporting",
    "get_report_service",
    "get_download_gateway",
    "get_inspection_service",
]


def get_actor_id(request: Request) -> UUID:
    """The acting user resolved by AuthenticationMiddleware."""
    actor_id = getattr(request.state, "actor_id", None)
    if actor_id is None:
        raise AuthenticationError("No acting user on request")
    return actor_id


def get_reporting(request: Request) -> ReportingServices:
    """Reporting components built during application startup."""
    return request.app.state.reporting


def get_report_service(
    reporting: Annotated[ReportingServices, Depends(get_reporting)],
) -> ReportService:
    return reporting.reports


def get_download_gateway(
    reporting: Annotated[ReportingServices, Depends(get_reporting)],
) -> DownloadGateway:
    return reporting.gateway


def get_inspection_service(
    reporting: Annotated[ReportingServices, Depends(get_reporting)],
) -> InspectionService:
    return reporting.inspections
