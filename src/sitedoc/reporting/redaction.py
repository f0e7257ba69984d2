"""Financial redaction of aggregated records.

Sensitive keys are removed from each record, never nulled, so no serializer
downstream can emit them. Nested mappings and lists are walked, which covers
the per-trade rates stored inside a diary's ``trades_on_site``.
"""

from collections.abc import Iterable, Mapping
from typing import Any, overload

from sitedoc.reporting.permissions import can_view_financials
from sitedoc.reporting.types import Role

FINANCIAL_FIELDS: frozenset[str] = frozenset(
    {
        "hourly_rate",
        "daily_rate",
        "standard_rate",
        "overtime_rate",
        "total_cost",
        "fuel_cost",
        "unit_cost",
        "labour_cost",
        "plant_cost",
        "material_cost",
        "daily_workforce_costs",
    }
)

Record = dict[str, Any]


def _strip(value: Any, fields: frozenset[str]) -> Any:
    if isinstance(value, Mapping):
        return {k: _strip(v, fields) for k, v in value.items() if k not in fields}
    if isinstance(value, list):
        return [_strip(item, fields) for item in value]
    return value


@overload
def redact(
    records: Record, role: Role | str | None, sensitive_fields: Iterable[str] = ...
) -> Record: ...


@overload
def redact(
    records: list[Record], role: Role | str | None, sensitive_fields: Iterable[str] = ...
) -> list[Record]: ...


def redact(
    records: Record | list[Record],
    role: Role | str | None,
    sensitive_fields: Iterable[str] = FINANCIAL_FIELDS,
) -> Record | list[Record]:
    """Remove sensitive fields unless ``role`` may view financials.

    Accepts a single record or a list of records and returns the same shape.
    The input is never modified; authorized roles get the records back
    unchanged.
    """
    if can_view_financials(role):
        return records
    fields = frozenset(sensitive_fields)
    if isinstance(records, list):
        return [_strip(record, fields) for record in records]
    return _strip(records, fields)


def has_sensitive_fields(records: Any, sensitive_fields: Iterable[str] = FINANCIAL_FIELDS) -> bool:
    """Whether any record (at any depth) carries a sensitive key."""
    fields = frozenset(sensitive_fields)
    if isinstance(records, Mapping):
        return any(k in fields or has_sensitive_fields(v, fields) for k, v in records.items())
    if isinstance(records, list):
        return any(has_sensitive_fields(item, fields) for item in records)
    return False
