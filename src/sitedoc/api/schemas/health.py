"""Health, readiness and component status schemas."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    """Status of one dependency (database, report workers)."""

    status: HealthStatus
    message: str | None = None
    latency_ms: float | None = None
    details: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    """Liveness: the process is up and serving."""

    status: HealthStatus = Field(..., description="Overall health status")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(..., description="Check timestamp")


class HealthDetailResponse(HealthResponse):
    """Database connectivity."""

    database: ComponentHealth = Field(..., description="Database health")


class ReadinessResponse(HealthDetailResponse):
    """Whether reports can be accepted and processed.

    Unhealthy when the database is unreachable or the background report
    workers are not running.
    """

    reporting: ComponentHealth = Field(..., description="Report runner health")

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "healthy",
                "version": "0.1.0",
                "timestamp": "2026-03-09T08:30:00Z",
                "database": {"status": "healthy", "latency_ms": 1.5},
                "reporting": {
                    "status": "healthy",
                    "message": "2 report workers running",
                    "details": {"runner": "background", "workers": 2, "pending": 0},
                },
            }
        }
    }


def worst_status(*components: ComponentHealth) -> HealthStatus:
    statuses = {component.status for component in components}
    for status in (HealthStatus.UNHEALTHY, HealthStatus.DEGRADED):
        if status in statuses:
            return status
    return HealthStatus.HEALTHY
