"""
Dockboard Logging - structured logging for the API, tracker, and CLI.

Every component logs through structlog so operation lifecycle events carry
their ``operation_id`` and ``subject`` as fields rather than as text.

Manifesto:
    A pull that hangs at 37% is only debuggable if every transition it went
    through is in the log with its identifier attached.

Architecture:
    ::

        configure_logging(level="INFO", json_format=None, service="dockboard")
            ↓
        structlog processor chain:
          1. merge_contextvars       (LogContext / bind_context fields)
          2. TimeStamper (iso), add_log_level, add_logger_name
          3. _add_service            service + pid
          4. _clip_long_values       registry/compose lines can be huge
          5. JSONRenderer | ConsoleRenderer
            ↓
        stdlib logging (shared with uvicorn and httpx)

Examples:
    >>> from dockboard.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> log = get_logger(__name__)
    >>> log.info("operation_completed", operation_id="nginx:latest-17")

Tags:
    logging, structlog, dockboard
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

MAX_VALUE_LENGTH = 500

# httpx logs every Engine request at INFO; pulls and stats polling flood it
_CHATTY_LOGGERS = ("httpx", "httpcore")

_service = "dockboard"


def _add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", _service)
    event_dict.setdefault("pid", os.getpid())
    return event_dict


def _clip_long_values(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Shorten oversized string fields such as raw stream lines."""
    for key, value in event_dict.items():
        if isinstance(value, str) and len(value) > MAX_VALUE_LENGTH:
            event_dict[key] = f"{value[:MAX_VALUE_LENGTH]}... ({len(value)} chars)"
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "dockboard",
) -> None:
    """Configure structured logging for the process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name attached to every event
    """
    global _service
    _service = service
    numeric = getattr(logging, level.upper())

    if json_format is None:
        json_format = not sys.stdout.isatty()

    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if json_format
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            _add_service,
            _clip_long_values,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric)
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind fields for the duration of a ``with`` / ``async with`` block.

    Example:
        async with LogContext(operation_id=op_id, subject="nginx:latest"):
            log.info("operation_running")
    """

    def __init__(self, **fields: Any):
        self._fields = fields

    def __enter__(self) -> LogContext:
        bind_context(**self._fields)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        unbind_context(*self._fields)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.__exit__(*exc_info)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
