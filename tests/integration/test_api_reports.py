"""Integration tests for the report endpoints."""

import json

import pytest
from httpx import AsyncClient
from uuid_utils.compat import uuid7

from sitedoc.reporting.types import ReportKind


async def create_report(client: AsyncClient, site, headers, **overrides):
    body = {
        "organization_id": str(site.org_id),
        "kind": "project_summary",
        "format": "pdf",
        "parameters": {"project_id": str(site.project_id)},
    }
    body.update(overrides)
    return await client.post("/v1/reports", json=body, headers=headers)


@pytest.mark.asyncio
class TestCreateReport:
    """Tests for POST /v1/reports."""

    async def test_accepted_then_completed(self, authenticated_client, as_user, site):
        """Test the report is accepted and, with the inline runner, already done."""
        response = await create_report(authenticated_client, site, as_user(site.manager_id))

        assert response.status_code == 202
        data = response.json()
        report_id = data["report_id"]

        status_response = await authenticated_client.get(
            f"/v1/reports/{report_id}", headers=as_user(site.viewer_id)
        )
        assert status_response.status_code == 200
        report = status_response.json()
        assert report["id"] == report_id
        assert report["status"] == "completed"
        assert report["progress"] == 100
        assert report["name"] == "Project Summary - Harbour Tower"
        assert report["requested_by"] == str(site.manager_id)
        assert report["mime_type"] == "application/pdf"
        assert "file_location" not in report

    async def test_unknown_kind(self, authenticated_client, as_user, site):
        response = await create_report(
            authenticated_client, site, as_user(site.owner_id), kind="weather_report"
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "invalid_parameters"
        assert body["message"] == "Unknown kind: weather_report"
        assert body["details"] == {"kind": "weather_report"}

    async def test_unsupported_format(self, authenticated_client, as_user, site):
        response = await create_report(
            authenticated_client, site, as_user(site.owner_id), format="docx"
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "unsupported_format"

    async def test_missing_project(self, authenticated_client, as_user, site):
        response = await create_report(
            authenticated_client, site, as_user(site.owner_id), parameters={}
        )

        assert response.status_code == 400
        assert "project_id" in response.json()["message"]

    async def test_non_member(self, authenticated_client, as_user, site):
        response = await create_report(authenticated_client, site, as_user(site.outsider_id))

        assert response.status_code == 403
        assert response.json()["error_code"] == "forbidden"

    async def test_malformed_body(self, authenticated_client, as_user, site):
        response = await authenticated_client.post(
            "/v1/reports",
            json={"organization_id": "not-a-uuid", "kind": "project_summary"},
            headers=as_user(site.owner_id),
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "validation_error"
        assert body["details"]["errors"]


@pytest.mark.asyncio
class TestListReports:
    """Tests for GET /v1/reports."""

    async def test_newest_first_with_paging(self, authenticated_client, as_user, site, add_report):
        first = await add_report()
        second = await add_report(kind=ReportKind.NCR_REPORT)

        response = await authenticated_client.get(
            "/v1/reports",
            params={"organization_id": str(site.org_id), "limit": 1},
            headers=as_user(site.viewer_id),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["limit"] == 1
        assert data["offset"] == 0
        assert data["reports"][0]["id"] == str(second.id)

        rest = await authenticated_client.get(
            "/v1/reports",
            params={"organization_id": str(site.org_id), "limit": 1, "offset": 1},
            headers=as_user(site.viewer_id),
        )
        assert [r["id"] for r in rest.json()["reports"]] == [str(first.id)]

    async def test_status_filter(self, authenticated_client, as_user, site, add_report):
        await add_report()
        failed = await add_report(status="failed")

        response = await authenticated_client.get(
            "/v1/reports",
            params={"organization_id": str(site.org_id), "status": "failed"},
            headers=as_user(site.owner_id),
        )

        assert [r["id"] for r in response.json()["reports"]] == [str(failed.id)]

    async def test_unknown_status_filter(self, authenticated_client, as_user, site):
        response = await authenticated_client.get(
            "/v1/reports",
            params={"organization_id": str(site.org_id), "status": "archived"},
            headers=as_user(site.owner_id),
        )

        assert response.status_code == 400

    async def test_limit_bounds(self, authenticated_client, as_user, site):
        response = await authenticated_client.get(
            "/v1/reports",
            params={"organization_id": str(site.org_id), "limit": 500},
            headers=as_user(site.owner_id),
        )

        assert response.status_code == 422

    async def test_non_member(self, authenticated_client, as_user, site):
        response = await authenticated_client.get(
            "/v1/reports",
            params={"organization_id": str(site.org_id)},
            headers=as_user(site.outsider_id),
        )

        assert response.status_code == 403


@pytest.mark.asyncio
class TestGetReport:
    """Tests for GET /v1/reports/{report_id}."""

    async def test_foreign_and_unknown_look_alike(
        self, authenticated_client, as_user, site, add_report
    ):
        report = await add_report()

        foreign = await authenticated_client.get(
            f"/v1/reports/{report.id}", headers=as_user(site.outsider_id)
        )
        unknown = await authenticated_client.get(
            f"/v1/reports/{uuid7()}", headers=as_user(site.owner_id)
        )

        assert foreign.status_code == unknown.status_code == 404
        assert foreign.json()["message"] == unknown.json()["message"]
        assert foreign.json()["details"] is None


@pytest.mark.asyncio
class TestDownloadReport:
    """Tests for GET /v1/reports/{report_id}/download."""

    async def test_completed_artifact(self, authenticated_client, as_user, site):
        created = await create_report(authenticated_client, site, as_user(site.owner_id))
        report_id = created.json()["report_id"]

        response = await authenticated_client.get(
            f"/v1/reports/{report_id}/download", headers=as_user(site.viewer_id)
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="project-summary-harbour-tower-')
        assert disposition.endswith('.pdf"')
        assert response.content.startswith(b"%PDF")

    async def test_format_override(self, authenticated_client, as_user, site):
        created = await create_report(authenticated_client, site, as_user(site.owner_id))
        report_id = created.json()["report_id"]

        response = await authenticated_client.get(
            f"/v1/reports/{report_id}/download",
            params={"format": "json"},
            headers=as_user(site.owner_id),
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert response.headers["content-disposition"].endswith('.json"')
        payload = json.loads(response.content)
        assert payload["statistics"]["total_ncrs"] == 2

    async def test_not_ready(self, authenticated_client, as_user, site, add_report):
        report = await add_report()

        response = await authenticated_client.get(
            f"/v1/reports/{report.id}/download", headers=as_user(site.owner_id)
        )

        assert response.status_code == 202
        assert response.headers["Retry-After"] == "2"
        assert response.json() == {
            "report_id": str(report.id),
            "status": "queued",
            "progress": 0,
            "current_step": None,
        }

    async def test_failed(self, authenticated_client, as_user, site):
        created = await create_report(
            authenticated_client, site, as_user(site.viewer_id), kind="financial_summary"
        )
        report_id = created.json()["report_id"]

        response = await authenticated_client.get(
            f"/v1/reports/{report_id}/download", headers=as_user(site.viewer_id)
        )

        assert response.status_code == 409
        body = response.json()
        assert body["error_code"] == "report_failed"
        assert body["message"].startswith("Access denied")

    async def test_foreign_organization(self, authenticated_client, as_user, site):
        created = await create_report(authenticated_client, site, as_user(site.owner_id))
        report_id = created.json()["report_id"]

        response = await authenticated_client.get(
            f"/v1/reports/{report_id}/download", headers=as_user(site.outsider_id)
        )

        assert response.status_code == 404

    async def test_financial_kind_forbidden(self, authenticated_client, as_user, site):
        created = await create_report(
            authenticated_client, site, as_user(site.finance_id), kind="financial_summary"
        )
        report_id = created.json()["report_id"]

        response = await authenticated_client.get(
            f"/v1/reports/{report_id}/download", headers=as_user(site.viewer_id)
        )

        assert response.status_code == 403


@pytest.mark.asyncio
class TestDeleteReport:
    """Tests for DELETE /v1/reports/{report_id}."""

    async def test_requester_deletes(self, authenticated_client, as_user, site):
        created = await create_report(authenticated_client, site, as_user(site.manager_id))
        report_id = created.json()["report_id"]

        response = await authenticated_client.delete(
            f"/v1/reports/{report_id}", headers=as_user(site.manager_id)
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        gone = await authenticated_client.get(
            f"/v1/reports/{report_id}", headers=as_user(site.manager_id)
        )
        assert gone.status_code == 404

    async def test_other_member_forbidden(self, authenticated_client, as_user, site):
        created = await create_report(authenticated_client, site, as_user(site.owner_id))
        report_id = created.json()["report_id"]

        response = await authenticated_client.delete(
            f"/v1/reports/{report_id}", headers=as_user(site.viewer_id)
        )

        assert response.status_code == 403


@pytest.mark.asyncio
class TestRetryReport:
    """Tests for POST /v1/reports/{report_id}/retry."""

    async def test_admin_retries(self, authenticated_client, as_user, site):
        created = await create_report(
            authenticated_client, site, as_user(site.owner_id), kind="ncr_report", format="csv"
        )
        report_id = created.json()["report_id"]

        response = await authenticated_client.post(
            f"/v1/reports/{report_id}/retry", headers=as_user(site.admin_id)
        )

        assert response.status_code == 202
        data = response.json()
        assert data["id"] == report_id
        assert data["status"] == "completed"

    async def test_pending_report_conflict(self, authenticated_client, as_user, site, add_report):
        report = await add_report()

        response = await authenticated_client.post(
            f"/v1/reports/{report.id}/retry", headers=as_user(site.owner_id)
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "invalid_transition"

    async def test_manager_forbidden(self, authenticated_client, as_user, site, add_report):
        report = await add_report(status="failed")

        response = await authenticated_client.post(
            f"/v1/reports/{report.id}/retry", headers=as_user(site.manager_id)
        )

        assert response.status_code == 403


@pytest.mark.asyncio
class TestReportAuditTrail:
    """Tests for GET /v1/reports/{report_id}/audit."""

    async def test_admin_reads_trail(self, authenticated_client, as_user, site):
        created = await create_report(
            authenticated_client, site, as_user(site.manager_id), kind="ncr_report", format="csv"
        )
        report_id = created.json()["report_id"]
        await authenticated_client.get(
            f"/v1/reports/{report_id}/download", headers=as_user(site.manager_id)
        )

        response = await authenticated_client.get(
            f"/v1/reports/{report_id}/audit", headers=as_user(site.admin_id)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["report_id"] == report_id
        assert [e["event_type"] for e in data["events"]] == [
            "report.downloaded",
            "report.requested",
        ]
        assert data["events"][1]["user_id"] == str(site.manager_id)
        assert data["events"][1]["event_data"] == {"kind": "ncr_report", "format": "csv"}

    async def test_member_forbidden(self, authenticated_client, as_user, site, add_report):
        report = await add_report(status="completed")

        response = await authenticated_client.get(
            f"/v1/reports/{report.id}/audit", headers=as_user(site.manager_id)
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "forbidden"

    async def test_unknown_report(self, authenticated_client, as_user, site):
        response = await authenticated_client.get(
            f"/v1/reports/{uuid7()}/audit", headers=as_user(site.owner_id)
        )

        assert response.status_code == 404
