"""Telemetry layer package for the remote ingestion boundary."""

from .channel import ApplicationInsightsTelemetryChannel, DisabledTelemetryChannel, telemetry_create_channel
from .connection_string import DEFAULT_INGESTION_ENDPOINT, telemetry_parse_connection_string
from .envelopes import (
    telemetry_build_exception_envelope,
    telemetry_build_message_envelope,
    telemetry_build_request_envelope,
    telemetry_format_duration,
    telemetry_severity_level,
)
from .errors import TelemetryConfigurationError, TelemetryError, TelemetryTransportError
from .interfaces import TelemetryChannelPort, TelemetryConnection

__all__ = [
    "ApplicationInsightsTelemetryChannel",
    "DEFAULT_INGESTION_ENDPOINT",
    "DisabledTelemetryChannel",
    "TelemetryChannelPort",
    "TelemetryConfigurationError",
    "TelemetryConnection",
    "TelemetryError",
    "TelemetryTransportError",
    "telemetry_build_exception_envelope",
    "telemetry_build_message_envelope",
    "telemetry_build_request_envelope",
    "telemetry_create_channel",
    "telemetry_format_duration",
    "telemetry_parse_connection_string",
    "telemetry_severity_level",
]
