"""Request context middleware.

Every response carries ``X-Request-ID``. Authenticated requests also run
inside a ``RequestContext`` and answer with ``X-Correlation-ID``; a caller
may supply its own correlation id to tie several requests together.
"""

from typing import Callable
from uuid import UUID

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from uuid_utils.compat import uuid7

from sitedoc.core.context import ActorType, create_context, request_context

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_ID_HEADER = "X-Correlation-ID"


def parse_correlation_id(value: str | None) -> UUID | None:
    """Caller-supplied correlation id; anything that is not a UUID is ignored."""
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Opens the request context for the acting user.

    Requires ``request.state.actor_id`` from ``AuthenticationMiddleware``;
    unauthenticated paths (health, metrics, docs) only get a request id.

    Sets:
        request.state.request_id: UUIDv7 used in error bodies and logs
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = uuid7()
        request.state.request_id = request_id

        actor_id = getattr(request.state, "actor_id", None)
        if actor_id is None:
            response = await call_next(request)
        else:
            ctx = create_context(
                actor_id=actor_id,
                actor_type=getattr(request.state, "actor_type", ActorType.HUMAN),
                request_id=request_id,
                correlation_id=parse_correlation_id(
                    request.headers.get(CORRELATION_ID_HEADER)
                ),
            )
            with request_context(ctx):
                response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = str(ctx.correlation_id)

        response.headers[REQUEST_ID_HEADER] = str(request_id)
        return response
