"""Observability middleware for HTTP request metrics."""

import re
import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from sitedoc.observability.metrics import record_http_request

_UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)
_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")


def normalize_path(path: str) -> str:
    """Replace UUIDs and numeric ids with ``{id}`` to bound label cardinality."""
    path = _UUID_PATTERN.sub("{id}", path)
    return _NUMERIC_SEGMENT.sub("/{id}", path)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Middleware that records Prometheus metrics for HTTP requests.

    Health and metrics endpoints are excluded to avoid noise.
    """

    EXCLUDED_PATHS = {"/health", "/health/db", "/health/ready", "/metrics"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with metrics instrumentation."""
        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return await call_next(request)

        endpoint = normalize_path(path)
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            record_http_request(
                method=request.method,
                endpoint=endpoint,
                status_code=500,
                duration_seconds=time.perf_counter() - start_time,
            )
            raise

        record_http_request(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
            duration_seconds=time.perf_counter() - start_time,
        )
        return response
