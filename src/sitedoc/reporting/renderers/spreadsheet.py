"""Spreadsheet (xlsx) renderer built on openpyxl.

The first sheet is a key-value summary; each non-empty section follows on
its own sheet as a table with a header row.
"""

from datetime import date
from io import BytesIO
from typing import Any

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font

from sitedoc.reporting.renderers.base import (
    cell_text,
    columns_for,
    humanize,
    section_title,
    statistic_label,
)
from sitedoc.reporting.types import RenderedArtifact, ReportDataset, ReportFormat

# Excel sheet titles are limited to 31 characters
SHEET_TITLE_LIMIT = 31


def _cell(value: Any) -> Any:
    if value is None or isinstance(value, (int, float, date)):
        return value
    # openpyxl refuses control characters in cell text
    return ILLEGAL_CHARACTERS_RE.sub("", value if isinstance(value, str) else cell_text(value))


class SpreadsheetRenderer:
    format = ReportFormat.SPREADSHEET
    mime_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    extension = "xlsx"

    def render(self, dataset: ReportDataset) -> RenderedArtifact:
        workbook = Workbook()
        summary = workbook.active
        summary.title = "Summary"
        bold = Font(bold=True)

        summary.append([dataset.title])
        summary["A1"].font = Font(bold=True, size=14)
        summary.append([])
        summary.append(["Project", _cell(dataset.project.get("name", ""))])
        summary.append(["Organization", _cell(dataset.organization.get("name", ""))])
        summary.append(["Period", dataset.period_label])
        summary.append(["Generated", dataset.generated_at.strftime("%d/%m/%Y %H:%M")])
        summary.append([])
        summary.append(["Statistics"])
        summary.cell(row=summary.max_row, column=1).font = bold
        for key, value in dataset.statistics.items():
            summary.append([statistic_label(key), _cell(value)])
        summary.column_dimensions["A"].width = 28
        summary.column_dimensions["B"].width = 40

        for name, rows in dataset.non_empty_sections().items():
            sheet = workbook.create_sheet(title=section_title(name)[:SHEET_TITLE_LIMIT])
            columns = columns_for(rows)
            sheet.append([humanize(column) for column in columns])
            for cell in sheet[1]:
                cell.font = bold
            for row in rows:
                sheet.append([_cell(row.get(column)) for column in columns])

        output = BytesIO()
        workbook.save(output)
        return RenderedArtifact(output.getvalue(), self.mime_type, self.extension)
