"""Unit tests for the download gateway."""

import json

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.testing import capture_logs
from uuid_utils.compat import uuid7

from sitedoc.core.audit import AuditLogger
from sitedoc.core.exceptions import (
    AccessDeniedError,
    ReportFailedError,
    ReportNotFoundError,
    StorageError,
    UnsupportedFormatError,
)
from sitedoc.db.models.audit import AuditEventType
from sitedoc.db.repositories.report import ReportRequestRepository
from sitedoc.reporting.gateway import DownloadGateway, DownloadResult, ReportNotReady
from sitedoc.reporting.storage import InMemoryBlobStore
from sitedoc.reporting.types import ReportKind, ReportStatus


async def completed_report(reporting, site, **kwargs):
    """Queue a report through intake; the inline runner completes it."""
    defaults = {
        "organization_id": site.org_id,
        "kind": "project_summary",
        "output_format": "pdf",
        "parameters": {"project_id": str(site.project_id)},
        "requested_by": site.owner_id,
    }
    defaults.update(kwargs)
    return await reporting.reports.request_report(**defaults)


class TestDownload:
    """Tests for serving stored and regenerated artifacts."""

    async def test_stored_artifact(self, reporting, blob_store, site):
        report = await completed_report(reporting, site)

        result = await reporting.gateway.download(report.id, site.owner_id)

        assert isinstance(result, DownloadResult)
        assert result.regenerated is False
        assert result.content == await blob_store.get(report.file_location)
        assert result.filename == report.file_name
        assert result.mime_type == "application/pdf"

    async def test_other_member_same_organization(self, reporting, site):
        report = await completed_report(reporting, site, requested_by=site.manager_id)

        result = await reporting.gateway.download(report.id, site.viewer_id)

        assert result.content.startswith(b"%PDF")

    async def test_format_override_regenerates(self, reporting, site):
        report = await completed_report(reporting, site)

        result = await reporting.gateway.download(report.id, site.owner_id, "csv")

        assert result.regenerated is True
        assert result.mime_type == "text/csv"
        assert result.filename == report.file_name.removesuffix(".pdf") + ".csv"
        assert b"Project Summary Report" in result.content

    async def test_regeneration_leaves_row_untouched(self, reporting, session_factory, site):
        report = await completed_report(reporting, site)

        await reporting.gateway.download(report.id, site.owner_id, "json")

        async with session_factory() as session:
            row = await ReportRequestRepository(session).get(report.id)
        assert row.format == "pdf"
        assert row.file_location == report.file_location
        assert row.file_size == report.file_size

    async def test_lost_blob_regenerated(self, reporting, blob_store, site):
        report = await completed_report(reporting, site)
        await blob_store.delete(report.file_location)

        result = await reporting.gateway.download(report.id, site.owner_id)

        assert result.regenerated is True
        assert result.content.startswith(b"%PDF")

    async def test_financials_withheld_from_viewer(self, reporting, site):
        """Test a stored artifact with rates is re-rendered redacted for a viewer."""
        report = await completed_report(reporting, site, output_format="json")
        assert report.includes_financials is True

        owner_copy = await reporting.gateway.download(report.id, site.owner_id)
        viewer_copy = await reporting.gateway.download(report.id, site.viewer_id)

        assert owner_copy.regenerated is False
        assert b"hourly_rate" in owner_copy.content
        assert viewer_copy.regenerated is True
        assert b"hourly_rate" not in viewer_copy.content
        payload = json.loads(viewer_copy.content)
        assert payload["statistics"]["total_diaries"] == 2

    async def test_financial_kind_denied_to_viewer(self, reporting, site):
        report = await completed_report(
            reporting, site, kind="financial_summary", requested_by=site.finance_id
        )
        assert report.status == "completed"

        with pytest.raises(AccessDeniedError):
            await reporting.gateway.download(report.id, site.viewer_id)

    async def test_unknown_override(self, reporting, site):
        report = await completed_report(reporting, site)

        with pytest.raises(UnsupportedFormatError):
            await reporting.gateway.download(report.id, site.owner_id, "docx")

    async def test_audit_event_recorded(self, reporting, session_factory, site):
        report = await completed_report(reporting, site)

        await reporting.gateway.download(report.id, site.viewer_id)

        async with session_factory() as session:
            events = await AuditLogger(session).query_events(
                event_type=AuditEventType.REPORT_DOWNLOADED, resource_id=str(report.id)
            )
        assert len(events) == 1
        assert events[0].user_id == site.viewer_id
        assert events[0].event_data == {"format": "pdf", "regenerated": False}


class TestDownloadStatus:
    """Tests for reports that cannot be served."""

    async def test_not_ready(self, reporting, site, add_report):
        report = await add_report()

        result = await reporting.gateway.download(report.id, site.owner_id)

        assert result == ReportNotReady(report.id, ReportStatus.QUEUED, 0, None)

    async def test_failed(self, reporting, site):
        report = await completed_report(
            reporting, site, kind="financial_summary", requested_by=site.viewer_id
        )

        with pytest.raises(ReportFailedError) as exc_info:
            await reporting.gateway.download(report.id, site.viewer_id)

        assert exc_info.value.message == report.error_message
        assert exc_info.value.message.startswith("Access denied")

    async def test_foreign_organization(self, reporting, site):
        report = await completed_report(reporting, site)

        with pytest.raises(ReportNotFoundError) as foreign:
            await reporting.gateway.download(report.id, site.outsider_id)
        with pytest.raises(ReportNotFoundError) as missing:
            await reporting.gateway.download(uuid7(), site.owner_id)

        assert foreign.value.message == missing.value.message == "Report not found"

    async def test_itp_pointer_rendered_on_demand(self, reporting, site):
        await reporting.inspections.finalize(site.draft_inspection_id, site.manager_id)
        entry = (
            await reporting.reports.list_reports(
                site.org_id, site.manager_id, kind=ReportKind.ITP_REPORT.value
            )
        )[0]

        result = await reporting.gateway.download(entry.id, site.viewer_id)

        assert result.regenerated is True
        assert result.filename == "itp-report-formwork-check.pdf"
        assert b"ITP Report: Formwork Check" in result.content


class TestDelete:
    """Tests for report deletion."""

    async def test_requester_deletes(self, reporting, blob_store, session_factory, site):
        report = await completed_report(reporting, site, requested_by=site.manager_id)

        await reporting.gateway.delete(report.id, site.manager_id)

        async with session_factory() as session:
            assert await ReportRequestRepository(session).get(report.id) is None
        assert await blob_store.get(report.file_location) is None

    async def test_admin_deletes_any(self, reporting, site):
        report = await completed_report(reporting, site, requested_by=site.manager_id)

        await reporting.gateway.delete(report.id, site.admin_id)

        with pytest.raises(ReportNotFoundError):
            await reporting.gateway.download(report.id, site.manager_id)

    async def test_other_member_denied(self, reporting, blob_store, site):
        report = await completed_report(reporting, site)

        with pytest.raises(AccessDeniedError):
            await reporting.gateway.delete(report.id, site.manager_id)

        assert await blob_store.get(report.file_location) is not None

    async def test_foreign_organization(self, reporting, site):
        report = await completed_report(reporting, site)

        with pytest.raises(ReportNotFoundError):
            await reporting.gateway.delete(report.id, site.outsider_id)

    async def test_storage_failure_keeps_row(self, reporting, session_factory, site):
        """Test the row survives when its artifact cannot be removed."""

        class UndeletableStore(InMemoryBlobStore):
            async def delete(self, location):
                raise StorageError("Failed to delete artifact", details={"location": location})

        store = UndeletableStore()
        gateway = DownloadGateway(session_factory, reporting.generator, store)
        report = await completed_report(reporting, site)

        with pytest.raises(StorageError):
            await gateway.delete(report.id, site.owner_id)

        async with session_factory() as session:
            assert await ReportRequestRepository(session).get(report.id) is not None

    async def test_commit_failure_after_artifact_removal(
        self, reporting, blob_store, session_factory, site, monkeypatch
    ):
        """Test a lost row delete is logged and the row still downloads."""
        report = await completed_report(reporting, site)

        async def failing_commit(self):
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(AsyncSession, "commit", failing_commit)
        with capture_logs() as logs, pytest.raises(OperationalError):
            await reporting.gateway.delete(report.id, site.owner_id)
        monkeypatch.undo()

        failure = next(
            log for log in logs if log["event"] == "Report row delete failed after artifact removal"
        )
        assert failure["log_level"] == "error"
        assert failure["report_id"] == str(report.id)
        assert await blob_store.get(report.file_location) is None
        async with session_factory() as session:
            assert await ReportRequestRepository(session).get(report.id) is not None

        result = await reporting.gateway.download(report.id, site.owner_id)
        assert result.regenerated is True
        assert result.content.startswith(b"%PDF")

    async def test_pending_report_deleted(self, reporting, session_factory, site, add_report):
        report = await add_report()

        await reporting.gateway.delete(report.id, site.owner_id)

        async with session_factory() as session:
            assert await ReportRequestRepository(session).get(report.id) is None
