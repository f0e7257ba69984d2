"""Unit tests for report renderers."""

import csv
import json
from datetime import UTC, date, datetime
from io import BytesIO, StringIO

import pytest
from openpyxl import load_workbook

from sitedoc.core.exceptions import UnsupportedFormatError
from sitedoc.reporting.renderers import (
    CsvRenderer,
    JsonRenderer,
    PdfRenderer,
    SpreadsheetRenderer,
    create_renderer_registry,
)
from sitedoc.reporting.renderers.base import cell_text, columns_for, format_date
from sitedoc.reporting.renderers.pdf import preview_line
from sitedoc.reporting.types import DateRange, ReportDataset, ReportFormat, ReportKind


def make_dataset(diaries: list[dict] | None = None) -> ReportDataset:
    diaries = diaries if diaries is not None else []
    return ReportDataset(
        kind=ReportKind.PROJECT_SUMMARY,
        title="Project Summary Report",
        organization={"id": "org", "name": "Harbour Builders"},
        project={"id": "p", "name": "Harbour Tower"},
        period=DateRange(start=date(2026, 3, 1), end=date(2026, 3, 31)),
        statistics={"total_diaries": len(diaries), "open_ncrs": 1},
        sections={
            "daily_diaries": diaries,
            "ncrs": [
                {
                    "ncr_number": "NCR-001",
                    "title": "Honeycombing, footing F3",
                    "raised_on": date(2026, 3, 3),
                }
            ],
        },
        preview_section="daily_diaries",
        generated_at=datetime(2026, 3, 9, 8, 30, tzinfo=UTC),
    )


def diary(day: int, activities: str = "Footing pour") -> dict:
    return {"diary_date": date(2026, 3, day), "activities": activities, "workforce_count": 4}


class TestRendererRegistry:
    """Tests for format lookup."""

    def test_all_formats_registered(self):
        registry = create_renderer_registry()
        assert set(registry.formats()) == set(ReportFormat)

    def test_lookup_by_alias(self):
        registry = create_renderer_registry()
        assert isinstance(registry.get("xlsx"), SpreadsheetRenderer)

    def test_unknown_format(self):
        with pytest.raises(UnsupportedFormatError) as exc_info:
            create_renderer_registry().get("docx")

        assert exc_info.value.output_format == "docx"


class TestTabularHelpers:
    """Tests for shared cell and column helpers."""

    def test_cell_text(self):
        assert cell_text(None) == ""
        assert cell_text(date(2026, 3, 2)) == "2026-03-02"
        assert cell_text([{"trade": "Concreter", "workers": 4}]) == "trade: Concreter, workers: 4"

    def test_columns_first_seen_order(self):
        assert columns_for([{"a": 1, "b": 2}, {"c": 3, "a": 4}]) == ["a", "b", "c"]

    def test_format_date(self):
        assert format_date(date(2026, 3, 2)) == "02/03/2026"


class TestPdfRenderer:
    """Tests for the PDF renderer."""

    def test_valid_pdf(self):
        artifact = PdfRenderer().render(make_dataset([diary(2)]))

        assert artifact.content.startswith(b"%PDF")
        assert artifact.mime_type == "application/pdf"
        assert artifact.extension == "pdf"
        assert artifact.size_bytes == len(artifact.content)

    def test_empty_dataset_still_renders(self):
        """Test a report with no records shows zero statistics."""
        artifact = PdfRenderer().render(make_dataset([]))

        assert artifact.content.startswith(b"%PDF")
        assert b"Daily Diaries: 0" in artifact.content
        assert b"No records for this period." in artifact.content

    def test_header_block(self):
        content = PdfRenderer().render(make_dataset([diary(2)])).content

        assert b"Project: Harbour Tower" in content
        assert b"Organization: Harbour Builders" in content
        assert b"Period: 2026-03-01 to 2026-03-31" in content

    def test_preview_limited(self):
        """Test the preview lists the first rows and counts the rest."""
        rows = [diary(day, f"Activity {day}") for day in range(1, 8)]

        content = PdfRenderer(preview_rows=3).render(make_dataset(rows)).content

        assert b"01/03/2026 - Activity 1" in content
        assert b"03/03/2026 - Activity 3" in content
        assert b"Activity 4" not in content
        assert b"... and 4 more" in content

    def test_preview_line_truncated(self):
        line = preview_line("daily_diaries", diary(2, "x" * 200))

        assert len(line) == 80
        assert line.endswith("...")

    def test_preview_line_without_date(self):
        assert preview_line("ncrs", {"title": "Crack"}) == "--/--/---- - Crack"


class TestSpreadsheetRenderer:
    """Tests for the xlsx renderer."""

    def test_summary_and_section_sheets(self):
        artifact = SpreadsheetRenderer().render(make_dataset([diary(2)]))
        workbook = load_workbook(BytesIO(artifact.content))

        assert artifact.extension == "xlsx"
        assert workbook.sheetnames == ["Summary", "Daily Diaries", "Non-Conformance Reports"]
        summary = workbook["Summary"]
        assert summary["A1"].value == "Project Summary Report"
        assert summary["B3"].value == "Harbour Tower"

    def test_section_header_row(self):
        workbook = load_workbook(
            BytesIO(SpreadsheetRenderer().render(make_dataset([diary(2)])).content)
        )
        sheet = workbook["Daily Diaries"]

        assert [c.value for c in sheet[1]] == ["Diary Date", "Activities", "Workforce Count"]
        assert sheet["B2"].value == "Footing pour"

    def test_control_characters_stripped(self):
        artifact = SpreadsheetRenderer().render(make_dataset([diary(2, "Pour slab\x0bformwork")]))
        sheet = load_workbook(BytesIO(artifact.content))["Daily Diaries"]

        assert sheet["B2"].value == "Pour slabformwork"

    def test_empty_sections_skipped(self):
        workbook = load_workbook(BytesIO(SpreadsheetRenderer().render(make_dataset([])).content))
        assert "Daily Diaries" not in workbook.sheetnames


class TestCsvRenderer:
    """Tests for the delimited renderer."""

    def test_commas_quoted(self):
        """Test free text containing commas stays in one column."""
        content = CsvRenderer().render(make_dataset([])).content.decode("utf-8")
        rows = list(csv.reader(StringIO(content)))

        ncr_row = next(row for row in rows if row and row[0] == "NCR-001")
        assert ncr_row == ["NCR-001", "Honeycombing, footing F3", "2026-03-03"]

    def test_header_and_statistics(self):
        content = CsvRenderer().render(make_dataset([diary(2)])).content.decode("utf-8")
        rows = list(csv.reader(StringIO(content)))

        assert rows[0] == ["Project Summary Report"]
        assert ["Project", "Harbour Tower"] in rows
        assert ["Daily Diaries", "1"] in rows
        assert ["Open NCRs", "1"] in rows


class TestJsonRenderer:
    """Tests for the JSON renderer."""

    def test_dump(self):
        artifact = JsonRenderer().render(make_dataset([diary(2)]))
        payload = json.loads(artifact.content)

        assert artifact.mime_type == "application/json"
        assert payload["kind"] == "project_summary"
        assert payload["period"] == {"start": "2026-03-01", "end": "2026-03-31"}
        assert payload["sections"]["daily_diaries"][0]["diary_date"] == "2026-03-02"
        assert payload["generated_at"].startswith("2026-03-09T08:30")
