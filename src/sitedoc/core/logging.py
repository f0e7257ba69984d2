"""Structured logging for the API and the report workers.

structlog renders every record, including those from the standard library
loggers of uvicorn and SQLAlchemy, through a single handler: JSON lines in
production, colored console output elsewhere. Request and job identifiers
from ``sitedoc.core.context`` are added to each line.
"""
# ruff: noqa: ARG001  # Processor signatures required by structlog API

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from sitedoc import __version__
from sitedoc.config.settings import Settings, get_settings
from sitedoc.core.context import get_current_context_or_none

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Loggers that get the structlog handler and stop propagating
_FOREIGN_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "sqlalchemy")


def add_request_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add request, correlation, actor and report ids from the active context."""
    ctx = get_current_context_or_none()
    if ctx is not None:
        for key, value in ctx.log_fields().items():
            event_dict.setdefault(key, value)
    return event_dict


def drop_color_message_key(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """uvicorn duplicates the message with ANSI codes under ``color_message``."""
    event_dict.pop("color_message", None)
    return event_dict


def service_info(environment: str) -> Processor:
    """Processor stamping the service version and deployment environment."""

    def add_service_info(
        logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict["environment"] = environment
        event_dict["service_version"] = __version__
        return event_dict

    return add_service_info


def _shared_processors(environment: str) -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_request_context,
        service_info(environment),
        drop_color_message_key,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(
    settings: Settings | None = None,
    log_level: LogLevel | None = None,
    json_format: bool | None = None,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        settings: Source of the level and environment (global settings if None)
        log_level: Override for ``settings.log_level``
        json_format: Override; JSON is the default only in production
    """
    settings = settings or get_settings()
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    if json_format is None:
        json_format = settings.ENVIRONMENT == "production"

    shared = _shared_processors(settings.ENVIRONMENT)
    if json_format:
        shared.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in _FOREIGN_LOGGERS:
        foreign = logging.getLogger(name)
        foreign.handlers = [handler]
        foreign.propagate = False

    # SQL echo is only wanted when explicitly debugging queries
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def bound_log_fields(**fields: Any) -> Iterator[None]:
    """Bind ``fields`` to every log line written inside the block.

    Example:
        with bound_log_fields(kind="ncr_report", format="csv"):
            logger.info("Rendering started")
    """
    structlog.contextvars.bind_contextvars(**fields)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*fields)


def log_exception(
    logger: structlog.stdlib.BoundLogger,
    exc: BaseException,
    event: str,
    **fields: Any,
) -> None:
    """Log ``exc`` at error level with its type, message and traceback."""
    logger.error(
        event,
        error_type=type(exc).__name__,
        error_message=str(exc),
        exc_info=exc,
        **fields,
    )
