"""Core types for the reporting module.

Enums for report kinds, formats, statuses and roles; the typed parameter
models for each report kind; and the dataset/artifact containers passed
between the aggregator, the renderers and the job.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from sitedoc.core.exceptions import InvalidParametersError

# =============================================================================
# Enums
# =============================================================================


class ReportKind(str, Enum):
    """Logical kinds of report."""

    PROJECT_SUMMARY = "project_summary"
    DAILY_DIARY_EXPORT = "daily_diary_export"
    INSPECTION_SUMMARY = "inspection_summary"
    NCR_REPORT = "ncr_report"
    FINANCIAL_SUMMARY = "financial_summary"
    ITP_REPORT = "itp_report"
    # Catalogued but not generated by this service
    SAFETY_REPORT = "safety_report"
    QUALITY_REPORT = "quality_report"
    CUSTOM = "custom"

    @property
    def label(self) -> str:
        if self is ReportKind.NCR_REPORT:
            return "NCR Report"
        if self is ReportKind.ITP_REPORT:
            return "ITP Report"
        return self.value.replace("_", " ").title()


class ReportFormat(str, Enum):
    """Output formats. ``excel`` is the spreadsheet format."""

    PDF = "pdf"
    SPREADSHEET = "excel"
    CSV = "csv"
    JSON = "json"

    @classmethod
    def _missing_(cls, value: object) -> "ReportFormat | None":
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in {"xlsx", "spreadsheet"}:
                return cls.SPREADSHEET
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class ReportStatus(str, Enum):
    """Lifecycle states of a report request."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Role(str, Enum):
    """Organization membership roles."""

    OWNER = "owner"
    ADMIN = "admin"
    PROJECT_MANAGER = "project_manager"
    SITE_FOREMAN = "site_foreman"
    FINANCE_MANAGER = "finance_manager"
    ACCOUNTANT = "accountant"
    MEMBER = "member"
    VIEWER = "viewer"


# =============================================================================
# Parameters
# =============================================================================


class DateRange(BaseModel):
    """Inclusive date range."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError("date_range.start must not be after date_range.end")
        return self

    def __str__(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


class _ProjectScoped(BaseModel):
    """Fields common to every report kind."""

    model_config = ConfigDict(extra="forbid")

    project_id: UUID
    date_range: DateRange | None = None


class ProjectSummaryParameters(_ProjectScoped):
    kind: Literal["project_summary"] = "project_summary"
    include_diaries: bool = True
    include_inspections: bool = True
    include_ncrs: bool = True


class DiaryExportParameters(_ProjectScoped):
    kind: Literal["daily_diary_export"] = "daily_diary_export"
    include_labour: bool = True
    include_plant: bool = True
    include_materials: bool = True


class InspectionSummaryParameters(_ProjectScoped):
    kind: Literal["inspection_summary"] = "inspection_summary"
    lot_id: UUID | None = None
    result: Literal["pass", "fail"] | None = None


class NcrReportParameters(_ProjectScoped):
    kind: Literal["ncr_report"] = "ncr_report"
    statuses: list[str] | None = None
    severity: str | None = None


class FinancialSummaryParameters(_ProjectScoped):
    kind: Literal["financial_summary"] = "financial_summary"


class ItpReportParameters(_ProjectScoped):
    """Parameters for an ITP report; ``inspection_id`` is the natural key."""

    kind: Literal["itp_report"] = "itp_report"
    inspection_id: UUID
    lot_id: UUID | None = None


ReportParameters = Annotated[
    ProjectSummaryParameters
    | DiaryExportParameters
    | InspectionSummaryParameters
    | NcrReportParameters
    | FinancialSummaryParameters
    | ItpReportParameters,
    Field(discriminator="kind"),
]

_parameters_adapter: TypeAdapter[ReportParameters] = TypeAdapter(ReportParameters)

GENERATED_KINDS = frozenset(
    {
        ReportKind.PROJECT_SUMMARY,
        ReportKind.DAILY_DIARY_EXPORT,
        ReportKind.INSPECTION_SUMMARY,
        ReportKind.NCR_REPORT,
        ReportKind.FINANCIAL_SUMMARY,
        ReportKind.ITP_REPORT,
    }
)


def parse_parameters(kind: ReportKind, raw: dict[str, Any] | None) -> ReportParameters:
    """Validate a raw parameter map against the model for ``kind``.

    Raises:
        InvalidParametersError: If the kind is not generated by this service
            or the parameters do not validate.
    """
    if kind not in GENERATED_KINDS:
        raise InvalidParametersError(
            "report kind is not supported", details={"kind": kind.value}
        )
    payload = dict(raw or {})
    payload["kind"] = kind.value
    try:
        return _parameters_adapter.validate_python(payload)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'][1:]) or 'parameters'}: {err['msg']}"
            for err in e.errors()
        ]
        raise InvalidParametersError(
            "Invalid report parameters: " + "; ".join(problems),
            details={"kind": kind.value, "errors": problems},
        ) from e


def dump_parameters(parameters: ReportParameters) -> dict[str, Any]:
    """JSON-safe map stored on the report row (the kind lives in its own column)."""
    return parameters.model_dump(mode="json", exclude={"kind"}, exclude_none=True)


# =============================================================================
# Dataset and Artifact
# =============================================================================


@dataclass
class ReportDataset:
    """Aggregated, already-redacted data for one report.

    ``sections`` maps a section name (``daily_diaries``, ``inspections``...)
    to its records in display order. ``preview_section`` names the section
    listed in the PDF preview.
    """

    kind: ReportKind
    title: str
    organization: dict[str, Any]
    project: dict[str, Any]
    period: DateRange | None = None
    statistics: dict[str, Any] = field(default_factory=dict)
    sections: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    preview_section: str | None = None
    includes_financials: bool = False
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def period_label(self) -> str:
        return str(self.period) if self.period else "All dates"

    def non_empty_sections(self) -> dict[str, list[dict[str, Any]]]:
        return {name: rows for name, rows in self.sections.items() if rows}

    def record_counts(self) -> dict[str, int]:
        return {name: len(rows) for name, rows in self.sections.items()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "title": self.title,
            "organization": self.organization,
            "project": self.project,
            "period": (
                {"start": self.period.start, "end": self.period.end} if self.period else None
            ),
            "statistics": self.statistics,
            "sections": self.sections,
            "generated_at": self.generated_at,
        }


@dataclass(frozen=True)
class RenderedArtifact:
    """Bytes produced by a renderer."""

    content: bytes
    mime_type: str
    extension: str

    @property
    def size_bytes(self) -> int:
        return len(self.content)
