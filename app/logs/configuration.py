"""Structured logging configuration for console and telemetry sinks.

structlog is layered over the stdlib `logging` module so that framework
records (uvicorn, starlette) and application records flow through one
processor chain and honour the same per-namespace level overrides.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog

from app.telemetry import TelemetryChannelPort

from .telemetry_handler import TelemetryLogHandler, logs_create_telemetry_formatter

LIFETIME_LOGGER_NAME = "app.hosting.lifetime"

_INSTALLED_HANDLER_MARKER = "_app_logs_handler"


def logs_shared_processors() -> list[Any]:
    """Return processors applied to every record before sink-specific rendering."""

    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def logs_configure(
    log_level: str = "INFO",
    log_format: str = "console",
    level_overrides: dict[str, str] | None = None,
    telemetry_channel: TelemetryChannelPort | None = None,
    stream: TextIO | None = None,
) -> list[logging.Handler]:
    """Configure process-wide logging with console and telemetry sinks.

    Calling this again replaces the handlers installed by a previous call;
    handlers installed by other code (for example test capture) are kept.

    Args:
        log_level: Default minimum level for the root logger.
        log_format: `console` for human-readable output, `json` for one JSON object per line.
        level_overrides: Logger name to level mapping applied after the default.
        telemetry_channel: Channel receiving every record, or None to skip the telemetry sink.
        stream: Console output stream, defaults to stderr.

    Returns:
        list[logging.Handler]: Installed handlers in sink order.

    Raises:
        ValueError: Raised when a level name or the log format is unknown.
    """

    shared_processors = logs_shared_processors()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handlers: list[logging.Handler] = [
        logs_create_console_handler(shared_processors=shared_processors, log_format=log_format, stream=stream)
    ]
    if telemetry_channel is not None:
        telemetry_handler = TelemetryLogHandler(channel=telemetry_channel)
        telemetry_handler.setFormatter(logs_create_telemetry_formatter(shared_processors))
        handlers.append(telemetry_handler)

    root_logger = logging.getLogger()
    for existing_handler in list(root_logger.handlers):
        if getattr(existing_handler, _INSTALLED_HANDLER_MARKER, False):
            root_logger.removeHandler(existing_handler)
            existing_handler.close()
    for handler in handlers:
        setattr(handler, _INSTALLED_HANDLER_MARKER, True)
        root_logger.addHandler(handler)
    root_logger.setLevel(logs_level_number(log_level))

    for logger_name, level in (level_overrides or {}).items():
        logging.getLogger(logger_name).setLevel(logs_level_number(level))

    return handlers


def logs_create_console_handler(
    shared_processors: list[Any],
    log_format: str = "console",
    stream: TextIO | None = None,
) -> logging.Handler:
    """Create the console sink handler.

    Args:
        shared_processors: Processors applied to records not emitted through structlog.
        log_format: `console` or `json`.
        stream: Output stream, defaults to stderr.

    Returns:
        logging.Handler: Stream handler rendering structured events.

    Raises:
        ValueError: Raised when the log format is unknown.
    """

    if log_format == "console":
        renderer_processors: list[Any] = [structlog.dev.ConsoleRenderer(colors=False)]
    elif log_format == "json":
        renderer_processors = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer(default=str)]
    else:
        raise ValueError(f"unknown log format: {log_format}")

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderer_processors],
        )
    )
    return handler


def logs_level_number(level: str) -> int:
    """Convert a level name to its numeric value.

    Raises:
        ValueError: Raised when the level name is unknown.
    """

    level_number = logging.getLevelName(level.strip().upper())
    if not isinstance(level_number, int):
        raise ValueError(f"unknown log level: {level}")
    return level_number


def logs_get_lifetime_logger() -> Any:
    """Return the logger used for host startup and shutdown events."""

    return structlog.get_logger(LIFETIME_LOGGER_NAME)
