"""Capability predicates for report permissions.

Each permission is decided by exactly one function here; call sites never
test role membership themselves.
"""

from uuid import UUID

from sitedoc.reporting.types import Role

FINANCIAL_ROLES = frozenset({Role.OWNER, Role.ADMIN, Role.FINANCE_MANAGER, Role.ACCOUNTANT})
ADMINISTRATIVE_ROLES = frozenset({Role.OWNER, Role.ADMIN})


def parse_role(value: str | Role | None) -> Role | None:
    """Role for a stored membership value; unknown values map to None."""
    if value is None or isinstance(value, Role):
        return value
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None


def can_view_financials(role: Role | str | None) -> bool:
    """Whether the role may see cost and rate fields."""
    return parse_role(role) in FINANCIAL_ROLES


def can_administer_reports(role: Role | str | None) -> bool:
    """Whether the role may delete or reset any report in its organization."""
    return parse_role(role) in ADMINISTRATIVE_ROLES


def can_delete_report(role: Role | str | None, requested_by: UUID, actor_id: UUID) -> bool:
    """The original requester, or an organization owner/admin."""
    return requested_by == actor_id or can_administer_reports(role)


def can_reset_report(role: Role | str | None) -> bool:
    return can_administer_reports(role)


def can_view_audit_trail(role: Role | str | None) -> bool:
    """Organization owners and admins read the audit entries of a report."""
    return can_administer_reports(role)
