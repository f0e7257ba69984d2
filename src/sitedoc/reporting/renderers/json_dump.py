"""JSON renderer: a direct dump of the (already redacted) dataset."""

import json

from sitedoc.reporting.types import RenderedArtifact, ReportDataset, ReportFormat


class JsonRenderer:
    format = ReportFormat.JSON
    mime_type = "application/json"
    extension = "json"

    def render(self, dataset: ReportDataset) -> RenderedArtifact:
        # Dates and datetimes are written in ISO format
        payload = json.dumps(dataset.to_dict(), indent=2, default=_isoformat)
        return RenderedArtifact(payload.encode("utf-8"), self.mime_type, self.extension)


def _isoformat(value: object) -> str:
    isoformat = getattr(value, "isoformat", None)
    if callable(isoformat):
        return isoformat()
    return str(value)
