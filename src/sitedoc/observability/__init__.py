"""Observability for sitedoc: Prometheus metrics.

Usage:
    from sitedoc.observability import observe_report_job

    with observe_report_job("project_summary", "pdf") as ctx:
        ...
        ctx["status"] = "completed"
"""

from .metrics import (
    MetricsConfig,
    MetricsManager,
    get_metrics,
    get_metrics_manager,
    observe_report_job,
    record_artifact,
    record_download,
    record_http_request,
    record_index_upsert,
    set_queue_depth,
)

__all__ = [
    "MetricsConfig",
    "MetricsManager",
    "get_metrics",
    "get_metrics_manager",
    "observe_report_job",
    "record_artifact",
    "record_download",
    "record_http_request",
    "record_index_upsert",
    "set_queue_depth",
]
