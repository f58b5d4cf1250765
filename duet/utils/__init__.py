"""Structured logging configuration using structlog.

Host logs always go to the interpreter's original stderr. Direct runs swap
``sys.stdout`` and ``sys.stderr`` while user code executes, and a log line
written through those would end up in someone's run output.
"""

import sys
from typing import TextIO

import structlog
from duet.config import settings


def log_stream() -> TextIO:
    """The stream host logs are written to, never a redirected one."""
    return sys.__stderr__ or sys.stderr


def setup_logging() -> None:
    """Configure structlog for Duet.

    Uses console renderer for development, JSON for production.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=log_stream().isatty())

    level_map = {"debug": 10, "info": 20, "warning": 30, "warn": 30, "error": 40, "critical": 50}
    log_level = level_map.get(settings.log_level.lower(), 20)

    structlog.configure(
        processors=[*shared_processors, structlog.processors.format_exc_info, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=log_stream()),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a structlog logger on the host log stream, optionally bound to a component name.

    Processors and level are resolved on first use, so a module-level logger
    picks up ``setup_logging()`` even when it is created first.
    """
    context = {"component": name} if name else {}
    return structlog.wrap_logger(structlog.PrintLogger(file=log_stream()), **context)
