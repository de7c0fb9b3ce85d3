"""Project-native typed exceptions for telemetry failures."""

from __future__ import annotations


class TelemetryError(Exception):
    """Base exception for telemetry-level failures."""


class TelemetryConfigurationError(TelemetryError, ValueError):
    """Connection string or exporter configuration is invalid."""


class TelemetryTransportError(TelemetryError, ConnectionError):
    """Transport-level failure while sending telemetry batches.

    Attributes:
        status_code: Optional HTTP status code returned by the ingestion endpoint.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
