"""PDF renderer.

Fixed A4 layout: title, project/organization/period block, a statistics
block, and a preview of the first rows of the dataset's preview section.
Long previews continue onto further pages.
"""

from io import BytesIO
from typing import Any

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen.canvas import Canvas

from sitedoc.core.exceptions import RenderingError
from sitedoc.reporting.renderers.base import format_date, section_title, statistic_label
from sitedoc.reporting.types import RenderedArtifact, ReportDataset, ReportFormat

MARGIN = 20 * mm
LINE_HEIGHT = 14
PREVIEW_TEXT_LIMIT = 80

# (date field, text field) listed for each section in the preview
PREVIEW_FIELDS: dict[str, tuple[str, str]] = {
    "daily_diaries": ("diary_date", "activities"),
    "inspections": ("inspection_date", "template_name"),
    "ncrs": ("raised_on", "title"),
    "daily_costs": ("diary_date", "activities"),
    "checklist_items": ("inspection_date", "item"),
}


def preview_line(section: str, record: dict[str, Any]) -> str:
    """``dd/mm/yyyy - text`` for one preview record."""
    date_field, text_field = PREVIEW_FIELDS.get(section, ("", ""))
    when = record.get(date_field)
    text = " ".join(str(record.get(text_field) or "").split()) or "-"
    prefix = format_date(when) if hasattr(when, "strftime") else "--/--/----"
    line = f"{prefix} - {text}"
    if len(line) > PREVIEW_TEXT_LIMIT:
        line = line[: PREVIEW_TEXT_LIMIT - 3] + "..."
    return line


class _Page:
    """Cursor over a canvas that starts a new page when the current one is full."""

    def __init__(self, canvas: Canvas):
        self.canvas = canvas
        self.width, self.height = A4
        self.y = self.height - MARGIN

    def line(self, text: str, *, font: str = "Helvetica", size: int = 11, gap: int = 0) -> None:
        if self.y - LINE_HEIGHT < MARGIN:
            self.canvas.showPage()
            self.y = self.height - MARGIN
        self.canvas.setFont(font, size)
        self.canvas.drawString(MARGIN, self.y, text)
        self.y -= max(LINE_HEIGHT, size + 4) + gap

    def rule(self) -> None:
        self.canvas.line(MARGIN, self.y + 6, self.width - MARGIN, self.y + 6)
        self.y -= LINE_HEIGHT


class PdfRenderer:
    format = ReportFormat.PDF
    mime_type = "application/pdf"
    extension = "pdf"

    def __init__(self, preview_rows: int = 5):
        self.preview_rows = preview_rows

    def render(self, dataset: ReportDataset) -> RenderedArtifact:
        buffer = BytesIO()
        # Uncompressed streams keep the drawn text searchable in the raw bytes
        canvas = Canvas(buffer, pagesize=A4, pageCompression=0)
        canvas.setTitle(dataset.title)
        canvas.setAuthor(dataset.organization.get("name", ""))
        page = _Page(canvas)

        page.line(dataset.title, font="Helvetica-Bold", size=24, gap=8)
        page.line(f"Project: {dataset.project.get('name', '')}")
        page.line(f"Organization: {dataset.organization.get('name', '')}")
        page.line(f"Period: {dataset.period_label}", gap=4)
        page.rule()

        page.line("Statistics", font="Helvetica-Bold", size=14)
        for key, value in dataset.statistics.items():
            page.line(f"{statistic_label(key)}: {value}")
        page.y -= LINE_HEIGHT

        section = dataset.preview_section
        if section is not None:
            rows = dataset.sections.get(section, [])
            page.line(f"Recent {section_title(section)}", font="Helvetica-Bold", size=14)
            if not rows:
                page.line("No records for this period.", font="Helvetica-Oblique")
            for record in rows[: self.preview_rows]:
                page.line(preview_line(section, record), size=10)
            if len(rows) > self.preview_rows:
                page.line(
                    f"... and {len(rows) - self.preview_rows} more", font="Helvetica-Oblique"
                )

        canvas.setFont("Helvetica", 8)
        canvas.drawString(
            MARGIN,
            MARGIN / 2,
            f"Generated on {dataset.generated_at.strftime('%d/%m/%Y %H:%M')} UTC",
        )
        try:
            canvas.save()
        except Exception as e:
            raise RenderingError(self.format.value, str(e)) from e
        return RenderedArtifact(buffer.getvalue(), self.mime_type, self.extension)
