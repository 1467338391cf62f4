# src/fanin/core/logging.py
"""Structured logging setup for fanin.

fanin modules log through structlog.get_logger(__name__). Completions are
delivered on store threads, so every event carries the name of the
thread that emitted it.

configure_logging() applies a LoggingSettings block to both structlog
and the stdlib root logger. Stdlib records (for example the
concurrent.futures logger reporting a failing done-callback) are passed
through the same processor chain via ProcessorFormatter.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.stdlib import ProcessorFormatter

from fanin.core.config import LoggingSettings

__all__ = ["configure_logging"]


def _drop_formatter_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Strip the _record/_from_structlog keys ProcessorFormatter always adds."""
    event_dict.pop("_record", None)
    event_dict.pop("_from_structlog", None)
    return event_dict


def _pre_chain() -> list[Any]:
    """Processors shared by structlog events and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        CallsiteParameterAdder([CallsiteParameter.THREAD_NAME]),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _formatter(settings: LoggingSettings) -> ProcessorFormatter:
    if settings.json_output:
        renderer: list[Any] = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    return ProcessorFormatter(
        processors=[_drop_formatter_fields, *renderer],
        foreign_pre_chain=_pre_chain(),
    )


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Route structlog and stdlib logging to stdout.

    Replaces any handlers already on the root logger. Safe to call
    repeatedly; loggers are not cached, so a later call takes effect for
    module-level loggers created earlier.

    Args:
        settings: Level and output format. Defaults to LoggingSettings().
    """
    settings = settings if settings is not None else LoggingSettings()

    structlog.configure(
        processors=[*_pre_chain(), ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_formatter(settings))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, settings.level))
