"""Client authentication and acting-user resolution.

Callers are the web and mobile backends. They authenticate with the shared
API key as a Bearer token and name the site user they act for in
``X-User-ID``; membership and role checks downstream are made against that
user. Probes and API docs are open.
"""

import re
import secrets
from datetime import UTC, datetime
from typing import Callable
from uuid import UUID

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from sitedoc.api.schemas.errors import APIError, ErrorCode
from sitedoc.config.settings import Settings, get_settings
from sitedoc.core.context import ActorType

OPEN_PATHS = frozenset(
    {"/health", "/health/db", "/health/ready", "/metrics", "/openapi.json"}
)
OPEN_PREFIXES = ("/docs", "/redoc")

USER_HEADER = "X-User-ID"

_BEARER = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


class CredentialsError(Exception):
    """Raised while reading credentials; the message is returned to the client."""


def is_open_path(path: str) -> bool:
    return path in OPEN_PATHS or path.startswith(OPEN_PREFIXES)


def api_key_accepted(token: str, settings: Settings) -> bool:
    """Compare against ``API_SECRET_KEY``.

    With no key configured only DEBUG deployments accept a (non-empty) token.
    """
    if settings.API_SECRET_KEY is None:
        return bool(token) and settings.DEBUG
    return secrets.compare_digest(token, settings.API_SECRET_KEY.get_secret_value())


def acting_user(request: Request, settings: Settings) -> UUID:
    """Validate the API key and return the user named in ``X-User-ID``.

    Raises:
        CredentialsError: Missing or malformed header, or a wrong key
    """
    authorization = request.headers.get("Authorization")
    if not authorization:
        raise CredentialsError("Missing Authorization header")
    match = _BEARER.match(authorization)
    if match is None:
        raise CredentialsError("Invalid Authorization header format")
    if not api_key_accepted(match.group(1), settings):
        raise CredentialsError("Invalid API key")

    user_header = request.headers.get(USER_HEADER)
    if not user_header:
        raise CredentialsError(f"Missing {USER_HEADER} header")
    try:
        return UUID(user_header)
    except ValueError:
        raise CredentialsError(f"Invalid {USER_HEADER} header") from None


def unauthorized(message: str) -> JSONResponse:
    # Runs before RequestContextMiddleware, so there is no request id yet
    body = APIError(
        error_code=ErrorCode.UNAUTHORIZED.value,
        message=message,
        details=None,
        request_id="unknown",
        timestamp=datetime.now(UTC),
    )
    return JSONResponse(
        status_code=401,
        content=body.model_dump(mode="json"),
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Rejects unauthenticated calls with 401.

    Sets:
        request.state.actor_id: UUID of the acting user
        request.state.actor_type: HUMAN
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if is_open_path(request.url.path):
            return await call_next(request)

        settings = getattr(request.app.state, "settings", None) or get_settings()
        try:
            actor_id = acting_user(request, settings)
        except CredentialsError as e:
            return unauthorized(str(e))

        request.state.actor_id = actor_id
        request.state.actor_type = ActorType.HUMAN
        return await call_next(request)
