"""One operational log line per HTTP request.

Audit events for report operations are written by the services; these
lines are for operators. Health and metrics probes are logged at debug so
scrapers do not drown out API traffic.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from sitedoc.core.logging import get_logger

logger = get_logger("sitedoc.api.requests")

PROBE_PATHS = frozenset({"/health", "/health/db", "/health/ready", "/metrics"})


def client_ip(request: Request) -> str | None:
    """First address in ``X-Forwarded-For``, else the socket peer."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else None


def log_method_for(path: str, status_code: int) -> Callable[..., None]:
    if status_code >= 500:
        return logger.error
    if status_code >= 400:
        return logger.warning
    return logger.debug if path in PROBE_PATHS else logger.info


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)

        path = request.url.path
        actor_id = getattr(request.state, "actor_id", None)
        log_method_for(path, response.status_code)(
            "HTTP request",
            request_id=str(getattr(request.state, "request_id", "unknown")),
            actor_id=str(actor_id) if actor_id else None,
            method=request.method,
            path=path,
            query=request.url.query or None,
            status_code=response.status_code,
            content_length=response.headers.get("Content-Length"),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            client_ip=client_ip(request),
        )
        return response
