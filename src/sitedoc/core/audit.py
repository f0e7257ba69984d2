"""Audit trail writes and queries.

Entries are written after the change they describe has committed, each in
its own transaction, so a failed audit write never undoes a report request
or deletion.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitedoc.core.context import get_current_context_or_none
from sitedoc.db.models.audit import AuditEvent, AuditEventType

# Recorded when no request or job context is active
NIL_CORRELATION_ID = UUID(int=0)

MAX_QUERY_LIMIT = 1000


class AuditLogger:
    """Adds and reads ``AuditEvent`` rows through one session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log_event(
        self,
        event_type: AuditEventType | str,
        event_data: dict[str, Any],
        *,
        organization_id: UUID | None = None,
        user_id: UUID | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        correlation_id: UUID | None = None,
    ) -> AuditEvent:
        """Add an entry and flush it.

        The active context fills in the correlation id, the actor type and,
        when ``user_id`` is not given, the acting user.
        """
        ctx = get_current_context_or_none()
        if correlation_id is None:
            correlation_id = ctx.correlation_id if ctx else NIL_CORRELATION_ID
        if user_id is None and ctx is not None:
            user_id = ctx.actor_id

        event = AuditEvent(
            event_type=AuditEventType(event_type).value,
            organization_id=organization_id,
            user_id=user_id,
            actor_type=ctx.actor_type.value if ctx else None,
            correlation_id=correlation_id,
            resource_type=resource_type,
            resource_id=resource_id,
            event_data=event_data,
        )
        self.db.add(event)
        await self.db.flush()
        return event

    async def query_events(
        self,
        *,
        organization_id: UUID | None = None,
        event_type: AuditEventType | str | None = None,
        resource_id: str | None = None,
        correlation_id: UUID | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Entries matching every given filter, newest first."""
        query = select(AuditEvent).order_by(
            AuditEvent.created_at.desc(),
            AuditEvent.audit_id.desc(),
        )
        if organization_id is not None:
            query = query.where(AuditEvent.organization_id == organization_id)
        if event_type is not None:
            query = query.where(AuditEvent.event_type == AuditEventType(event_type).value)
        if resource_id is not None:
            query = query.where(AuditEvent.resource_id == resource_id)
        if correlation_id is not None:
            query = query.where(AuditEvent.correlation_id == correlation_id)
        if since is not None:
            query = query.where(AuditEvent.created_at >= since)

        result = await self.db.execute(query.limit(min(limit, MAX_QUERY_LIMIT)))
        return list(result.scalars().all())


async def record_audit_event(
    session_factory: async_sessionmaker[AsyncSession],
    event_type: AuditEventType,
    *,
    organization_id: UUID | None,
    resource_type: str,
    resource_id: UUID | str,
    event_data: dict[str, Any] | None = None,
    user_id: UUID | None = None,
) -> None:
    """Write one entry in its own transaction.

    Callers wrap this in ``best_effort`` once their primary change has
    committed.
    """
    async with session_factory() as session:
        await AuditLogger(session).log_event(
            event_type,
            event_data or {},
            organization_id=organization_id,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=str(resource_id),
        )
        await session.commit()
