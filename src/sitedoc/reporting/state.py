"""Report request status state machine.

    queued ──► processing ──► completed
       │           │  ▲
       │           └──┘ (progress updates)
       │           │
       └───────────┴────────► failed

``completed`` and ``failed`` are terminal for the job. The only way out of a
terminal state is the administrative reset back to ``queued``.
"""

from sitedoc.reporting.types import ReportStatus

JOB_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.QUEUED: frozenset({ReportStatus.PROCESSING, ReportStatus.FAILED}),
    ReportStatus.PROCESSING: frozenset(
        {ReportStatus.PROCESSING, ReportStatus.COMPLETED, ReportStatus.FAILED}
    ),
    ReportStatus.COMPLETED: frozenset(),
    ReportStatus.FAILED: frozenset(),
}

ADMIN_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.COMPLETED: frozenset({ReportStatus.QUEUED}),
    ReportStatus.FAILED: frozenset({ReportStatus.QUEUED}),
}

TERMINAL_STATUSES = frozenset({ReportStatus.COMPLETED, ReportStatus.FAILED})
PENDING_STATUSES = frozenset({ReportStatus.QUEUED, ReportStatus.PROCESSING})


def can_transition(
    current: ReportStatus, target: ReportStatus, *, administrative: bool = False
) -> bool:
    """Check whether ``current -> target`` is allowed."""
    if target in JOB_TRANSITIONS.get(current, frozenset()):
        return True
    if administrative:
        return target in ADMIN_TRANSITIONS.get(current, frozenset())
    return False


def sources_for(target: ReportStatus, *, administrative: bool = False) -> list[str]:
    """Statuses a row may be in for a guarded update to ``target``.

    Used to build the ``WHERE status IN (...)`` clause of conditional
    updates, so the database enforces the same table as ``can_transition``.
    """
    return [
        current.value
        for current in ReportStatus
        if can_transition(current, target, administrative=administrative)
    ]


def is_terminal(status: ReportStatus | str) -> bool:
    return ReportStatus(status) in TERMINAL_STATUSES
