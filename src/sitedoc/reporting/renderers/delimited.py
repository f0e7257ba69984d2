"""Delimited text renderer.

Produces a readable multi-section document rather than one strict table:
a header block, the statistics, then one titled table per non-empty
section. Free-text values go through the csv module's quoting, so commas
inside them never shift columns.
"""

import csv
from io import StringIO

from sitedoc.reporting.renderers.base import (
    cell_text,
    columns_for,
    humanize,
    section_title,
    statistic_label,
)
from sitedoc.reporting.types import RenderedArtifact, ReportDataset, ReportFormat


class CsvRenderer:
    format = ReportFormat.CSV
    mime_type = "text/csv"
    extension = "csv"

    def render(self, dataset: ReportDataset) -> RenderedArtifact:
        buffer = StringIO()
        writer = csv.writer(buffer, lineterminator="\n")

        writer.writerow([dataset.title])
        writer.writerow(["Project", dataset.project.get("name", "")])
        writer.writerow(["Organization", dataset.organization.get("name", "")])
        writer.writerow(["Period", dataset.period_label])
        writer.writerow(["Generated", dataset.generated_at.strftime("%d/%m/%Y %H:%M")])
        writer.writerow([])

        writer.writerow(["Statistics"])
        for key, value in dataset.statistics.items():
            writer.writerow([statistic_label(key), cell_text(value)])

        for name, rows in dataset.non_empty_sections().items():
            writer.writerow([])
            writer.writerow([section_title(name)])
            columns = columns_for(rows)
            writer.writerow([humanize(column) for column in columns])
            for row in rows:
                writer.writerow([cell_text(row.get(column)) for column in columns])

        return RenderedArtifact(
            buffer.getvalue().encode("utf-8"), self.mime_type, self.extension
        )
