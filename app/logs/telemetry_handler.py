"""Logging handler forwarding log records to the telemetry channel as traces."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from types import TracebackType
from typing import Any

import structlog

from app.telemetry import (
    TelemetryChannelPort,
    telemetry_build_exception_envelope,
    telemetry_build_message_envelope,
    telemetry_severity_level,
)

_ExcInfo = tuple[type[BaseException], BaseException, TracebackType | None]

_RESERVED_EVENT_KEYS = ("event", "level", "timestamp", "exception", "exc_info", "stack")


class TelemetryFeedbackFilter(logging.Filter):
    """Reject records emitted by the telemetry layer itself.

    Shipping the channel's own transport warnings through the channel would
    loop on every failed flush.
    """

    def __init__(self, excluded_prefix: str = "app.telemetry"):
        super().__init__()
        self._excluded_prefix = excluded_prefix

    def filter(self, record: logging.LogRecord) -> bool:
        return not (record.name == self._excluded_prefix or record.name.startswith(f"{self._excluded_prefix}."))


class TelemetryLogHandler(logging.Handler):
    """Convert log records into trace or exception envelopes.

    The handler's formatter must render the structlog event dict as JSON;
    `logs_configure` installs a matching `ProcessorFormatter`.
    """

    def __init__(self, channel: TelemetryChannelPort, level: int = logging.NOTSET):
        """Initialize telemetry handler.

        Args:
            channel: Destination telemetry channel.
            level: Minimum level handled.

        Raises:
            ValueError: Raised when channel is None.
        """

        if channel is None:
            raise ValueError("channel must not be None")
        super().__init__(level=level)
        self._channel = channel
        self.addFilter(TelemetryFeedbackFilter())

    @property
    def channel(self) -> TelemetryChannelPort:
        return self._channel

    def emit(self, record: logging.LogRecord) -> None:
        instrumentation_key = self._channel.instrumentation_key
        if not self._channel.telemetry_enabled or instrumentation_key is None:
            return
        try:
            envelope = self._logs_build_envelope(record=record, instrumentation_key=instrumentation_key)
            self._channel.telemetry_enqueue(envelope)
        except Exception:
            self.handleError(record)

    def _logs_build_envelope(self, record: logging.LogRecord, instrumentation_key: str) -> dict[str, Any]:
        exc_info = _logs_resolve_exc_info(record)
        event_dict = self._logs_render_event_dict(record)
        message = str(event_dict.get("event", record.getMessage()))
        properties = {key: value for key, value in event_dict.items() if key not in _RESERVED_EVENT_KEYS}
        properties.setdefault("logger", record.name)
        tags = _logs_build_context_tags(properties)
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        severity_level = telemetry_severity_level(record.levelno)

        if exc_info is not None:
            return telemetry_build_exception_envelope(
                instrumentation_key=instrumentation_key,
                error=exc_info[1],
                severity_level=severity_level,
                message=message,
                properties=properties,
                tags=tags,
                timestamp=timestamp,
            )
        return telemetry_build_message_envelope(
            instrumentation_key=instrumentation_key,
            message=message,
            severity_level=severity_level,
            properties=properties,
            tags=tags,
            timestamp=timestamp,
        )

    def _logs_render_event_dict(self, record: logging.LogRecord) -> dict[str, Any]:
        if self.formatter is None:
            return {"event": record.getMessage()}
        rendered = self.format(record)
        try:
            event_dict = json.loads(rendered)
        except ValueError:
            return {"event": rendered}
        if not isinstance(event_dict, dict):
            return {"event": rendered}
        return event_dict


def logs_create_telemetry_formatter(shared_processors: list[Any]) -> logging.Formatter:
    """Create the JSON formatter expected by `TelemetryLogHandler`."""

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _logs_drop_exc_info,
            structlog.processors.JSONRenderer(default=str),
        ],
    )


def _logs_drop_exc_info(_logger: Any, _method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.pop("exc_info", None)
    return event_dict


def _logs_resolve_exc_info(record: logging.LogRecord) -> _ExcInfo | None:
    candidate: object = record.exc_info
    if not candidate and isinstance(record.msg, dict):
        candidate = record.msg.get("exc_info")

    if candidate is True:
        candidate = sys.exc_info()
    if isinstance(candidate, BaseException):
        return (type(candidate), candidate, candidate.__traceback__)
    if isinstance(candidate, tuple) and len(candidate) == 3 and isinstance(candidate[1], BaseException):
        return candidate  # type: ignore[return-value]
    return None


def _logs_build_context_tags(properties: dict[str, Any]) -> dict[str, str]:
    tags: dict[str, str] = {}
    request_id = properties.get("request_id")
    if request_id:
        tags["ai.operation.id"] = str(request_id)
    operation_name = properties.get("operation_name")
    if operation_name:
        tags["ai.operation.name"] = str(operation_name)
    return tags
