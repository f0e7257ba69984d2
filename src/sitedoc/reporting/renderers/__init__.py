"""Output format renderers for report datasets."""

from .base import Renderer, RendererRegistry
from .delimited import CsvRenderer
from .json_dump import JsonRenderer
from .pdf import PdfRenderer
from .spreadsheet import SpreadsheetRenderer


def create_renderer_registry(*, preview_rows: int = 5) -> RendererRegistry:
    """Registry with the PDF, spreadsheet, CSV and JSON renderers."""
    return RendererRegistry(
        [
            PdfRenderer(preview_rows=preview_rows),
            SpreadsheetRenderer(),
            CsvRenderer(),
            JsonRenderer(),
        ]
    )


__all__ = [
    "CsvRenderer",
    "JsonRenderer",
    "PdfRenderer",
    "Renderer",
    "RendererRegistry",
    "SpreadsheetRenderer",
    "create_renderer_registry",
]
