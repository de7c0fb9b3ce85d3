"""Connection string parsing for the telemetry ingestion backend."""

from __future__ import annotations

from typing import Final
from urllib.parse import urlsplit

from .errors import TelemetryConfigurationError
from .interfaces import TelemetryConnection

DEFAULT_INGESTION_ENDPOINT: Final[str] = "https://dc.services.visualstudio.com"

_INSTRUMENTATION_KEY: Final[str] = "instrumentationkey"
_INGESTION_ENDPOINT_KEY: Final[str] = "ingestionendpoint"
_ENDPOINT_SUFFIX_KEY: Final[str] = "endpointsuffix"
_LOCATION_KEY: Final[str] = "location"


def telemetry_parse_connection_string(connection_string: str) -> TelemetryConnection:
    """Parse a `Key=Value;Key=Value` telemetry connection string.

    Keys are matched case-insensitively. `IngestionEndpoint` wins over an
    `EndpointSuffix` (optionally prefixed by `Location`), which wins over the
    global default endpoint.

    Args:
        connection_string: Raw connection string.

    Returns:
        TelemetryConnection: Parsed connection settings.

    Raises:
        TelemetryConfigurationError: Raised when the string is blank, malformed or lacks an instrumentation key.
    """

    normalized_value = connection_string.strip()
    if not normalized_value:
        raise TelemetryConfigurationError("telemetry connection string must not be blank")

    properties: dict[str, str] = {}
    for segment in normalized_value.split(";"):
        if not segment.strip():
            continue
        key, separator, value = segment.partition("=")
        if not separator or not key.strip():
            raise TelemetryConfigurationError(f"malformed telemetry connection string segment: {segment.strip()!r}")
        properties[key.strip().lower()] = value.strip()

    instrumentation_key = properties.get(_INSTRUMENTATION_KEY, "")
    if not instrumentation_key:
        raise TelemetryConfigurationError("telemetry connection string is missing InstrumentationKey")

    return TelemetryConnection(
        instrumentation_key=instrumentation_key,
        ingestion_endpoint=_telemetry_resolve_ingestion_endpoint(properties),
        properties=properties,
    )


def _telemetry_resolve_ingestion_endpoint(properties: dict[str, str]) -> str:
    explicit_endpoint = properties.get(_INGESTION_ENDPOINT_KEY, "")
    if explicit_endpoint:
        endpoint = explicit_endpoint
    elif properties.get(_ENDPOINT_SUFFIX_KEY):
        location = properties.get(_LOCATION_KEY, "")
        suffix = properties[_ENDPOINT_SUFFIX_KEY].strip(".")
        host = f"{location}.dc.{suffix}" if location else f"dc.{suffix}"
        endpoint = f"https://{host}"
    else:
        endpoint = DEFAULT_INGESTION_ENDPOINT

    if not endpoint.startswith(("https://", "http://")):
        raise TelemetryConfigurationError(f"telemetry ingestion endpoint must be an http(s) URL: {endpoint}")
    try:
        endpoint_parts = urlsplit(endpoint)
        _ = endpoint_parts.port
    except ValueError as error:
        raise TelemetryConfigurationError(f"telemetry ingestion endpoint is not a valid URL: {endpoint}") from error
    if not endpoint_parts.hostname:
        raise TelemetryConfigurationError(f"telemetry ingestion endpoint has no host: {endpoint}")
    return endpoint.rstrip("/")
