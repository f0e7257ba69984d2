"""API v1 routers."""

from fastapi import APIRouter

from .inspections import router as inspections_router
from .reports import router as reports_router

# Create v1 router that includes all v1 endpoints
router = APIRouter(prefix="/v1")

router.include_router(reports_router)
router.include_router(inspections_router)

__all__ = ["router", "reports_router", "inspections_router"]
