"""Unit tests for error handling utilities and the HTTP error mapping."""

import asyncio

import pytest
from structlog.testing import capture_logs

from sitedoc.api.middleware.errors import map_exception
from sitedoc.core.error_handling import (
    INTERNAL_FAILURE_MESSAGE,
    best_effort,
    bound_error_message,
    describe_failure,
)
from sitedoc.core.exceptions import (
    AccessDeniedError,
    AggregationError,
    InvalidParametersError,
    InvalidTransitionError,
    ReportFailedError,
    ReportNotFoundError,
    StorageError,
    UnsupportedFormatError,
)


class TestBestEffort:
    """Tests for the best_effort context manager."""

    async def test_failure_logged_and_discarded(self):
        with capture_logs() as logs:
            async with best_effort("index_itp_report", inspection_id="abc"):
                raise RuntimeError("catalog unavailable")

        assert logs[0]["event"] == "Non-critical side effect failed"
        assert logs[0]["operation"] == "index_itp_report"
        assert logs[0]["inspection_id"] == "abc"
        assert logs[0]["error_type"] == "RuntimeError"
        assert logs[0]["log_level"] == "warning"

    async def test_success_passes_through(self):
        calls = []
        with capture_logs() as logs:
            async with best_effort("audit"):
                calls.append("ran")

        assert calls == ["ran"]
        assert logs == []

    async def test_cancellation_propagates(self):
        with pytest.raises(asyncio.CancelledError):
            async with best_effort("audit"):
                raise asyncio.CancelledError()


class TestBoundErrorMessage:
    def test_short_message_unchanged(self):
        assert bound_error_message("Project not found", 500) == "Project not found"

    def test_whitespace_collapsed(self):
        assert bound_error_message("line one\n\n  line two", 500) == "line one line two"

    def test_truncated_to_limit(self):
        message = bound_error_message("x" * 100, 20)

        assert len(message) == 20
        assert message == "x" * 17 + "..."


class TestDescribeFailure:
    def test_report_error_message_kept(self):
        assert describe_failure(AggregationError("Project not found")) == "Project not found"

    def test_timeout(self):
        assert describe_failure(TimeoutError()) == "Report generation timed out"

    def test_unexpected_error_is_generic(self):
        assert describe_failure(KeyError("lot_number")) == INTERNAL_FAILURE_MESSAGE
        assert describe_failure(RuntimeError("db password=hunter2")) == INTERNAL_FAILURE_MESSAGE
        assert "hunter2" not in describe_failure(RuntimeError("db password=hunter2"))


class TestMapException:
    """Tests for exception to HTTP status mapping."""

    @pytest.mark.parametrize(
        ("exc", "status_code", "error_code"),
        [
            (InvalidParametersError("bad"), 400, "invalid_parameters"),
            (UnsupportedFormatError("docx"), 400, "unsupported_format"),
            (AccessDeniedError("not a member"), 403, "forbidden"),
            (ReportNotFoundError("r1"), 404, "not_found"),
            (ReportFailedError("r1", "Project not found"), 409, "report_failed"),
            (InvalidTransitionError("r1", "queued", "queued"), 409, "invalid_transition"),
        ],
    )
    def test_status_codes(self, exc, status_code, error_code):
        assert map_exception(exc)[:2] == (status_code, error_code)

    def test_not_found_has_no_details(self):
        status_code, _, message, details = map_exception(ReportNotFoundError("r1"))

        assert status_code == 404
        assert message == "Report not found"
        assert details is None

    def test_access_denied_message(self):
        _, _, message, _ = map_exception(AccessDeniedError("not a member"))

        assert message == "Access denied: not a member"

    @pytest.mark.parametrize(
        "exc",
        [
            AggregationError("Project not found"),
            StorageError("Failed to store artifact", details={"key": "a/b"}),
            ValueError("internal detail"),
        ],
    )
    def test_internal_errors_are_generic(self, exc):
        assert map_exception(exc) == (500, "internal_error", "Internal server error", None)
