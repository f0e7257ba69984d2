"""Prometheus metrics for report jobs, artifacts, downloads and the HTTP API.

All metrics live in the default registry under the ``sitedoc_`` prefix and
are served by ``GET /metrics``.
"""

from __future__ import annotations

import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

if TYPE_CHECKING:
    from collections.abc import Generator

__all__ = [
    "MetricsConfig",
    "MetricsManager",
    "observe_report_job",
    "record_artifact",
    "record_download",
    "record_index_upsert",
    "record_http_request",
    "set_queue_depth",
    "get_metrics",
    "get_metrics_manager",
]

PREFIX = "sitedoc"

# Jobs run for seconds, not milliseconds; API calls are the reverse
_JOB_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0)
_HTTP_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
_ARTIFACT_BUCKETS = (1_000, 5_000, 10_000, 50_000, 100_000, 500_000, 1_000_000, 5_000_000)


@dataclass(frozen=True)
class MetricsConfig:
    enabled: bool = True
    prefix: str = PREFIX

    @classmethod
    def from_env(cls) -> MetricsConfig:
        """Read ``METRICS_ENABLED`` and ``METRICS_PREFIX``."""
        flag = os.getenv("METRICS_ENABLED", "true").strip().lower()
        return cls(
            enabled=flag not in {"0", "false", "no", "off"},
            prefix=os.getenv("METRICS_PREFIX", PREFIX),
        )


# ============================================================================
# Report jobs
# ============================================================================

REPORT_JOB_COUNT = Counter(
    f"{PREFIX}_report_jobs_total",
    "Report jobs by terminal outcome",
    ["kind", "format", "status"],
)
REPORT_JOB_DURATION = Histogram(
    f"{PREFIX}_report_job_duration_seconds",
    "Time from claim to terminal status for one report job",
    ["kind", "format", "status"],
    buckets=_JOB_BUCKETS,
)
REPORT_JOBS_IN_PROGRESS = Gauge(
    f"{PREFIX}_report_jobs_in_progress",
    "Report jobs currently being processed",
    ["kind"],
)
REPORT_QUEUE_DEPTH = Gauge(
    f"{PREFIX}_report_queue_depth",
    "Report ids waiting in the in-process job queue",
)

# ============================================================================
# Artifacts, downloads and the catalog
# ============================================================================

REPORT_ARTIFACT_SIZE = Histogram(
    f"{PREFIX}_report_artifact_size_bytes",
    "Size of rendered report artifacts",
    ["format"],
    buckets=_ARTIFACT_BUCKETS,
)
REPORT_DOWNLOAD_COUNT = Counter(
    f"{PREFIX}_report_downloads_total",
    "Report downloads by how the bytes were obtained",
    ["format", "source"],
)
REPORT_INDEX_UPSERT_COUNT = Counter(
    f"{PREFIX}_report_index_upserts_total",
    "Catalog upserts by kind and action",
    ["kind", "action"],
)

# ============================================================================
# HTTP API
# ============================================================================

HTTP_REQUEST_DURATION = Histogram(
    f"{PREFIX}_http_request_duration_seconds",
    "API request latency by route template",
    ["method", "endpoint", "status_code"],
    buckets=_HTTP_BUCKETS,
)
HTTP_REQUEST_COUNT = Counter(
    f"{PREFIX}_http_requests_total",
    "API requests by route template and status",
    ["method", "endpoint", "status_code"],
)

SERVICE_INFO = Info(f"{PREFIX}_service", "Running service version and environment")


class MetricsManager:
    """Renders the exposition for one registry and publishes service info."""

    def __init__(
        self,
        config: MetricsConfig | None = None,
        registry: CollectorRegistry | None = None,
    ) -> None:
        self.config = config or MetricsConfig()
        self.registry = registry if registry is not None else REGISTRY
        self._published = False

    def publish_service_info(self, version: str, environment: str) -> None:
        """Set ``sitedoc_service_info`` once per process."""
        if self._published or not self.config.enabled:
            return
        SERVICE_INFO.info({"version": version, "environment": environment})
        self._published = True

    def render(self) -> bytes:
        if not self.config.enabled:
            return b""
        return generate_latest(self.registry)


_manager: MetricsManager | None = None


def get_metrics_manager() -> MetricsManager:
    global _manager
    if _manager is None:
        _manager = MetricsManager(MetricsConfig.from_env())
    return _manager


def get_metrics() -> bytes:
    """Exposition text for ``GET /metrics``."""
    return get_metrics_manager().render()


# ============================================================================
# Recording helpers
# ============================================================================


@contextmanager
def observe_report_job(kind: str, output_format: str) -> Generator[dict[str, Any], None, None]:
    """Count and time one report job.

    The caller sets ``outcome["status"]`` to the terminal status it recorded;
    an exception escaping the block is counted as ``error``.
    """
    outcome: dict[str, Any] = {"status": "completed"}
    REPORT_JOBS_IN_PROGRESS.labels(kind=kind).inc()
    started = time.perf_counter()
    try:
        yield outcome
    except Exception:
        outcome["status"] = "error"
        raise
    finally:
        labels = {"kind": kind, "format": output_format, "status": outcome["status"]}
        REPORT_JOB_DURATION.labels(**labels).observe(time.perf_counter() - started)
        REPORT_JOB_COUNT.labels(**labels).inc()
        REPORT_JOBS_IN_PROGRESS.labels(kind=kind).dec()


def record_artifact(output_format: str, size_bytes: int) -> None:
    REPORT_ARTIFACT_SIZE.labels(format=output_format).observe(size_bytes)


def record_download(output_format: str, source: str) -> None:
    """``source`` is ``stored`` or ``regenerated``."""
    REPORT_DOWNLOAD_COUNT.labels(format=output_format, source=source).inc()


def record_index_upsert(kind: str, action: str) -> None:
    """``action`` is ``inserted`` or ``updated``."""
    REPORT_INDEX_UPSERT_COUNT.labels(kind=kind, action=action).inc()


def set_queue_depth(depth: int) -> None:
    REPORT_QUEUE_DEPTH.set(depth)


def record_http_request(
    method: str, endpoint: str, status_code: int, duration_seconds: float
) -> None:
    labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}
    HTTP_REQUEST_DURATION.labels(**labels).observe(duration_seconds)
    HTTP_REQUEST_COUNT.labels(**labels).inc()
