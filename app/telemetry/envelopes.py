"""Builders for telemetry envelopes in the ingestion v2 schema."""

from __future__ import annotations

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Final

_SEVERITY_VERBOSE: Final[int] = 0
_SEVERITY_INFORMATION: Final[int] = 1
_SEVERITY_WARNING: Final[int] = 2
_SEVERITY_ERROR: Final[int] = 3
_SEVERITY_CRITICAL: Final[int] = 4


def telemetry_severity_level(level_number: int) -> int:
    """Map a stdlib logging level number to a telemetry severity level.

    Args:
        level_number: Logging level, for example `logging.WARNING`.

    Returns:
        int: Severity level between 0 (verbose) and 4 (critical).
    """

    if level_number >= logging.CRITICAL:
        return _SEVERITY_CRITICAL
    if level_number >= logging.ERROR:
        return _SEVERITY_ERROR
    if level_number >= logging.WARNING:
        return _SEVERITY_WARNING
    if level_number >= logging.INFO:
        return _SEVERITY_INFORMATION
    return _SEVERITY_VERBOSE


def telemetry_format_duration(duration_seconds: float) -> str:
    """Format a duration as `[d.]hh:mm:ss.ffffff`.

    Args:
        duration_seconds: Non-negative duration in seconds.

    Returns:
        str: Formatted duration string.

    Raises:
        ValueError: Raised when the duration is negative.
    """

    if duration_seconds < 0:
        raise ValueError("duration_seconds must be >= 0")

    total_microseconds = int(round(duration_seconds * 1_000_000))
    total_seconds, microseconds = divmod(total_microseconds, 1_000_000)
    total_minutes, seconds = divmod(total_seconds, 60)
    total_hours, minutes = divmod(total_minutes, 60)
    days, hours = divmod(total_hours, 24)
    formatted = f"{hours:02d}:{minutes:02d}:{seconds:02d}.{microseconds:06d}"
    if days:
        return f"{days}.{formatted}"
    return formatted


def telemetry_stringify_properties(properties: dict[str, Any] | None) -> dict[str, str]:
    """Convert arbitrary property values to strings, dropping None values."""

    if not properties:
        return {}
    return {str(key): str(value) for key, value in properties.items() if value is not None}


def telemetry_build_message_envelope(
    instrumentation_key: str,
    message: str,
    severity_level: int,
    properties: dict[str, Any] | None = None,
    tags: dict[str, str] | None = None,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Build one trace (`MessageData`) envelope.

    Args:
        instrumentation_key: Target resource key.
        message: Rendered log message.
        severity_level: Telemetry severity level.
        properties: Custom dimensions.
        tags: Context tags such as operation id and cloud role.
        timestamp: Event time, defaults to now in UTC.

    Returns:
        dict[str, Any]: Serializable envelope.
    """

    return _telemetry_build_envelope(
        instrumentation_key=instrumentation_key,
        item_type="Message",
        base_type="MessageData",
        base_data={
            "ver": 2,
            "message": message,
            "severityLevel": severity_level,
            "properties": telemetry_stringify_properties(properties),
        },
        tags=tags,
        timestamp=timestamp,
    )


def telemetry_build_request_envelope(
    instrumentation_key: str,
    request_id: str,
    name: str,
    url: str,
    duration_seconds: float,
    response_code: int,
    success: bool,
    properties: dict[str, Any] | None = None,
    tags: dict[str, str] | None = None,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Build one request (`RequestData`) envelope.

    Args:
        instrumentation_key: Target resource key.
        request_id: Unique request identifier.
        name: Operation name, for example `GET /Home/Index`.
        url: Full request URL.
        duration_seconds: Request processing time.
        response_code: HTTP status code.
        success: Whether the request is considered successful.
        properties: Custom dimensions.
        tags: Context tags.
        timestamp: Request start time, defaults to now in UTC.

    Returns:
        dict[str, Any]: Serializable envelope.
    """

    return _telemetry_build_envelope(
        instrumentation_key=instrumentation_key,
        item_type="Request",
        base_type="RequestData",
        base_data={
            "ver": 2,
            "id": request_id,
            "name": name,
            "url": url,
            "duration": telemetry_format_duration(duration_seconds),
            "responseCode": str(response_code),
            "success": success,
            "properties": telemetry_stringify_properties(properties),
        },
        tags=tags,
        timestamp=timestamp,
    )


def telemetry_build_exception_envelope(
    instrumentation_key: str,
    error: BaseException,
    severity_level: int = _SEVERITY_ERROR,
    message: str | None = None,
    properties: dict[str, Any] | None = None,
    tags: dict[str, str] | None = None,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Build one exception (`ExceptionData`) envelope.

    Args:
        instrumentation_key: Target resource key.
        error: Exception instance; its traceback is rendered as the stack.
        severity_level: Telemetry severity level.
        message: Optional log message accompanying the exception.
        properties: Custom dimensions.
        tags: Context tags.
        timestamp: Event time, defaults to now in UTC.

    Returns:
        dict[str, Any]: Serializable envelope.
    """

    stack_text = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    merged_properties = dict(properties or {})
    if message:
        merged_properties.setdefault("message", message)
    return _telemetry_build_envelope(
        instrumentation_key=instrumentation_key,
        item_type="Exception",
        base_type="ExceptionData",
        base_data={
            "ver": 2,
            "exceptions": [
                {
                    "typeName": type(error).__qualname__,
                    "message": str(error),
                    "hasFullStack": True,
                    "stack": stack_text,
                }
            ],
            "severityLevel": severity_level,
            "properties": telemetry_stringify_properties(merged_properties),
        },
        tags=tags,
        timestamp=timestamp,
    )


def _telemetry_build_envelope(
    instrumentation_key: str,
    item_type: str,
    base_type: str,
    base_data: dict[str, Any],
    tags: dict[str, str] | None,
    timestamp: datetime | None,
) -> dict[str, Any]:
    event_time = (timestamp or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return {
        "name": f"Microsoft.ApplicationInsights.{instrumentation_key.replace('-', '')}.{item_type}",
        "time": event_time.isoformat().replace("+00:00", "Z"),
        "iKey": instrumentation_key,
        "tags": dict(tags or {}),
        "data": {"baseType": base_type, "baseData": base_data},
    }
