"""Renderer interface and registry.

A renderer turns a ``ReportDataset`` into bytes for one output format. The
registry maps each ``ReportFormat`` to its renderer; asking for a format
without one raises ``UnsupportedFormatError``.
"""

from datetime import date, datetime
from typing import Any, Protocol, runtime_checkable

from sitedoc.core.exceptions import UnsupportedFormatError
from sitedoc.reporting.types import RenderedArtifact, ReportDataset, ReportFormat

STATISTIC_LABELS: dict[str, str] = {
    "total_diaries": "Daily Diaries",
    "total_inspections": "Inspections",
    "passed_inspections": "Passed Inspections",
    "failed_inspections": "Failed Inspections",
    "pass_rate": "Pass Rate (%)",
    "total_ncrs": "NCRs",
    "open_ncrs": "Open NCRs",
    "closed_ncrs": "Closed NCRs",
    "total_lots": "Lots",
}

SECTION_TITLES: dict[str, str] = {
    "daily_diaries": "Daily Diaries",
    "ncrs": "Non-Conformance Reports",
    "daily_costs": "Daily Costs",
    "checklist_items": "Checklist Items",
}


def humanize(key: str) -> str:
    return key.replace("_", " ").title()


def statistic_label(key: str) -> str:
    return STATISTIC_LABELS.get(key, humanize(key))


def section_title(name: str) -> str:
    return SECTION_TITLES.get(name, humanize(name))


def format_date(value: date | datetime) -> str:
    """``dd/mm/yyyy``, the date style used on printed reports."""
    return value.strftime("%d/%m/%Y")


def cell_text(value: Any) -> str:
    """Flat text for one value in a tabular layout."""
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, list):
        return "; ".join(cell_text(v) for v in value)
    if isinstance(value, dict):
        return ", ".join(f"{k}: {cell_text(v)}" for k, v in value.items())
    return str(value)


def columns_for(rows: list[dict[str, Any]]) -> list[str]:
    """Union of the keys of ``rows`` in first-seen order."""
    columns: list[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)
    return columns


@runtime_checkable
class Renderer(Protocol):
    """Renders a dataset to bytes in one format."""

    format: ReportFormat
    mime_type: str
    extension: str

    def render(self, dataset: ReportDataset) -> RenderedArtifact: ...


class RendererRegistry:
    """Lookup of renderers by output format."""

    def __init__(self, renderers: list[Renderer] | None = None):
        self._renderers: dict[ReportFormat, Renderer] = {}
        for renderer in renderers or []:
            self.register(renderer)

    def register(self, renderer: Renderer) -> None:
        self._renderers[renderer.format] = renderer

    def get(self, output_format: ReportFormat | str) -> Renderer:
        """Renderer for ``output_format``.

        Raises:
            UnsupportedFormatError: If no renderer handles the format
        """
        try:
            key = ReportFormat(output_format)
        except ValueError:
            raise UnsupportedFormatError(str(output_format)) from None
        renderer = self._renderers.get(key)
        if renderer is None:
            raise UnsupportedFormatError(key.value)
        return renderer

    def formats(self) -> list[ReportFormat]:
        return list(self._renderers)
