"""Report generation: request intake, jobs, rendering, storage and delivery.

Service wiring lives in ``sitedoc.reporting.factory``; this package root
only re-exports the shared value types.
"""

from .types import (
    GENERATED_KINDS,
    DateRange,
    RenderedArtifact,
    ReportDataset,
    ReportFormat,
    ReportKind,
    ReportParameters,
    ReportStatus,
    Role,
    dump_parameters,
    parse_parameters,
)

__all__ = [
    "GENERATED_KINDS",
    "DateRange",
    "RenderedArtifact",
    "ReportDataset",
    "ReportFormat",
    "ReportKind",
    "ReportParameters",
    "ReportStatus",
    "Role",
    "dump_parameters",
    "parse_parameters",
]
