"""Actor and correlation context for API requests and report jobs.

The request middleware opens one context per authenticated request. A report
job opens its own context with the requester as actor and the report id
attached, so every log line and audit event written while the job runs can
be traced back to the report and, when the job runs inline, to the request
that queued it.

Usage:
    from sitedoc.core.context import create_context, request_context

    with request_context(create_context(actor_id=user_id)):
        await service.request_report(...)
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field
from uuid_utils.compat import uuid7

from sitedoc.core.exceptions import ContextNotSetError


class ActorType(str, Enum):
    """Who is acting."""

    HUMAN = "human"  # Site user acting through the web or mobile client
    SYSTEM = "system"  # Report workers


class RequestContext(BaseModel):
    """Identifiers shared by everything done for one request or job."""

    request_id: UUID = Field(default_factory=uuid7)
    actor_id: UUID
    actor_type: ActorType = ActorType.HUMAN
    correlation_id: UUID = Field(default_factory=uuid7)
    report_id: UUID | None = None
    initiated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"frozen": True}

    def log_fields(self) -> dict[str, str]:
        """Fields added to every structured log line."""
        fields = {
            "request_id": str(self.request_id),
            "correlation_id": str(self.correlation_id),
            "actor_id": str(self.actor_id),
        }
        if self.report_id is not None:
            fields["report_id"] = str(self.report_id)
        return fields

    def to_audit_dict(self) -> dict[str, Any]:
        return {
            **self.log_fields(),
            "actor_type": self.actor_type.value,
            "initiated_at": self.initiated_at.isoformat(),
        }


_current: ContextVar[RequestContext | None] = ContextVar("sitedoc_context", default=None)


def get_current_context() -> RequestContext:
    """The active context.

    Raises:
        ContextNotSetError: Outside any ``request_context`` block
    """
    ctx = _current.get()
    if ctx is None:
        raise ContextNotSetError("No request context is set. Use request_context().")
    return ctx


def get_current_context_or_none() -> RequestContext | None:
    """The active context, or None. Background workers start without one."""
    return _current.get()


@contextmanager
def request_context(ctx: RequestContext) -> Iterator[RequestContext]:
    """Make ``ctx`` current for the duration of the block.

    Tasks created inside the block inherit it.
    """
    token = _current.set(ctx)
    try:
        yield ctx
    finally:
        _current.reset(token)


def create_context(
    *,
    actor_id: UUID,
    actor_type: ActorType = ActorType.HUMAN,
    request_id: UUID | None = None,
    correlation_id: UUID | None = None,
) -> RequestContext:
    """Build a context, generating any id not supplied."""
    return RequestContext(
        actor_id=actor_id,
        actor_type=actor_type,
        request_id=request_id or uuid7(),
        correlation_id=correlation_id or uuid7(),
    )


def job_context(report_id: UUID, requested_by: UUID) -> RequestContext:
    """Context for one report job.

    The correlation id of the surrounding request is kept when there is
    one (the inline runner); background workers get a fresh one.
    """
    parent = get_current_context_or_none()
    return RequestContext(
        actor_id=requested_by,
        actor_type=ActorType.SYSTEM,
        correlation_id=parent.correlation_id if parent else uuid7(),
        report_id=report_id,
    )
