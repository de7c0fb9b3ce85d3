"""Logging package for structured console and telemetry sinks."""

from .configuration import (
    LIFETIME_LOGGER_NAME,
    logs_configure,
    logs_create_console_handler,
    logs_get_lifetime_logger,
    logs_level_number,
    logs_shared_processors,
)
from .telemetry_handler import TelemetryFeedbackFilter, TelemetryLogHandler, logs_create_telemetry_formatter

__all__ = [
    "LIFETIME_LOGGER_NAME",
    "TelemetryFeedbackFilter",
    "TelemetryLogHandler",
    "logs_configure",
    "logs_create_console_handler",
    "logs_create_telemetry_formatter",
    "logs_get_lifetime_logger",
    "logs_level_number",
    "logs_shared_processors",
]
