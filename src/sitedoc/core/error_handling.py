"""Error handling utilities for secondary effects and persisted error text.

Usage:
    from sitedoc.core.error_handling import best_effort, bound_error_message

    # After the primary write has committed
    async with best_effort("index_itp_report", inspection_id=str(inspection_id)):
        await indexer.upsert(...)

    # Before persisting an error on a report row
    report.error_message = bound_error_message(str(exc), limit=500)
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sitedoc.core.exceptions import ReportError
from sitedoc.core.logging import get_logger

logger = get_logger("sitedoc.errors")

TRUNCATION_MARKER = "..."


@asynccontextmanager
async def best_effort(operation: str, **fields: Any) -> AsyncIterator[None]:
    """Run a non-critical side effect, logging and discarding its failure.

    Only wrap work whose failure must not undo or block an effect that has
    already committed (catalog indexing, audit writes). Cancellation is not
    caught.

    Args:
        operation: Short name of the side effect, used as a log field
        **fields: Extra structured fields for the warning
    """
    try:
        yield
    except Exception as exc:
        logger.warning(
            "Non-critical side effect failed",
            operation=operation,
            error_type=type(exc).__name__,
            error_message=str(exc),
            exc_info=True,
            **fields,
        )


def bound_error_message(message: str, limit: int) -> str:
    """Trim an error message to at most ``limit`` characters."""
    message = " ".join(message.split())
    if len(message) <= limit:
        return message
    return message[: limit - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


# Persisted for faults that are not report errors; the detail is only logged
INTERNAL_FAILURE_MESSAGE = "Report generation failed due to an internal error"


def describe_failure(exc: BaseException) -> str:
    """Human-readable failure text for a report row.

    Report errors carry a message written for the requester. Anything else
    is an internal fault: the row gets a generic message and the exception
    text stays in the operational log.
    """
    if isinstance(exc, ReportError):
        return exc.message
    if isinstance(exc, TimeoutError):
        return "Report generation timed out"
    return INTERNAL_FAILURE_MESSAGE
