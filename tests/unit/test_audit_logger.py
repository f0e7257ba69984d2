"""Unit tests for the audit trail."""

from datetime import timedelta

import pytest
from uuid_utils.compat import uuid7

from sitedoc.core.audit import NIL_CORRELATION_ID, AuditLogger, record_audit_event
from sitedoc.core.context import create_context, job_context, request_context
from sitedoc.db.models import utcnow
from sitedoc.db.models.audit import AuditEventType


@pytest.mark.asyncio
class TestLogEvent:
    """Tests for AuditLogger.log_event."""

    async def test_basic_event(self, db_session):
        correlation_id = uuid7()
        organization_id = uuid7()

        event = await AuditLogger(db_session).log_event(
            AuditEventType.REPORT_REQUESTED,
            {"kind": "project_summary", "format": "pdf"},
            correlation_id=correlation_id,
            organization_id=organization_id,
            resource_type="report",
            resource_id="r-1",
        )

        assert event.audit_id is not None
        assert event.event_type == "report.requested"
        assert event.organization_id == organization_id
        assert event.correlation_id == correlation_id
        assert event.event_data == {"kind": "project_summary", "format": "pdf"}
        assert event.created_at is not None

    async def test_uses_request_context(self, db_session):
        """Test correlation id, actor and actor type come from the current context."""
        ctx = create_context(actor_id=uuid7())

        with request_context(ctx):
            event = await AuditLogger(db_session).log_event(
                AuditEventType.REPORT_DOWNLOADED, {"format": "pdf"}
            )

        assert event.correlation_id == ctx.correlation_id
        assert event.user_id == ctx.actor_id
        assert event.actor_type == "human"

    async def test_job_context_marks_system_actor(self, db_session):
        requested_by = uuid7()

        with request_context(job_context(uuid7(), requested_by)):
            event = await AuditLogger(db_session).log_event("report.retried", {})

        assert event.user_id == requested_by
        assert event.actor_type == "system"

    async def test_without_context(self, db_session):
        event = await AuditLogger(db_session).log_event("report.deleted", {})

        assert event.correlation_id == NIL_CORRELATION_ID
        assert event.user_id is None
        assert event.actor_type is None

    async def test_unknown_event_type_rejected(self, db_session):
        with pytest.raises(ValueError):
            await AuditLogger(db_session).log_event("report.printed", {})


@pytest.mark.asyncio
class TestQueryEvents:
    async def test_filters(self, db_session):
        logger = AuditLogger(db_session)
        org_a, org_b = uuid7(), uuid7()
        correlation_id = uuid7()
        await logger.log_event(
            AuditEventType.REPORT_REQUESTED, {}, organization_id=org_a, resource_id="r-1"
        )
        await logger.log_event(
            AuditEventType.REPORT_DOWNLOADED,
            {},
            organization_id=org_a,
            resource_id="r-1",
            correlation_id=correlation_id,
        )
        await logger.log_event(
            AuditEventType.REPORT_REQUESTED, {}, organization_id=org_b, resource_id="r-2"
        )

        by_org = await logger.query_events(organization_id=org_a)
        requested = await logger.query_events(event_type=AuditEventType.REPORT_REQUESTED)
        by_resource = await logger.query_events(resource_id="r-2")
        by_correlation = await logger.query_events(correlation_id=correlation_id)
        future = await logger.query_events(since=utcnow() + timedelta(hours=1))

        assert len(by_org) == 2
        assert {e.resource_id for e in requested} == {"r-1", "r-2"}
        assert [e.organization_id for e in by_resource] == [org_b]
        assert [e.event_type for e in by_correlation] == ["report.downloaded"]
        assert future == []

    async def test_newest_first(self, db_session):
        logger = AuditLogger(db_session)
        for index in range(3):
            await logger.log_event(AuditEventType.REPORT_REQUESTED, {"index": index})

        events = await logger.query_events(limit=2)

        assert [e.event_data["index"] for e in events] == [2, 1]


@pytest.mark.asyncio
async def test_record_audit_event_commits(session_factory):
    """Test the event is committed in its own transaction."""
    organization_id = uuid7()
    report_id = uuid7()

    await record_audit_event(
        session_factory,
        AuditEventType.REPORT_DELETED,
        organization_id=organization_id,
        resource_type="report",
        resource_id=report_id,
    )

    async with session_factory() as session:
        events = await AuditLogger(session).query_events(organization_id=organization_id)
    assert len(events) == 1
    assert events[0].resource_id == str(report_id)
    assert events[0].event_data == {}
