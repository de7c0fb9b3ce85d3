"""Tests for telemetry connection string parsing and channel selection."""

import pytest

from app.telemetry import (
    DEFAULT_INGESTION_ENDPOINT,
    ApplicationInsightsTelemetryChannel,
    DisabledTelemetryChannel,
    TelemetryConfigurationError,
    telemetry_create_channel,
    telemetry_parse_connection_string,
)

_KEY = "00000000-0000-0000-0000-000000000001"


def test_telemetry_parse_uses_explicit_ingestion_endpoint() -> None:
    """Use the explicit ingestion endpoint and strip its trailing slash.

    Returns:
        None: Assertions validate parsed values.

    Raises:
        AssertionError: Raised when parsed values differ.
    """

    connection = telemetry_parse_connection_string(
        f"InstrumentationKey={_KEY};IngestionEndpoint=https://westeurope-5.in.applicationinsights.azure.com/;"
        "LiveEndpoint=https://westeurope.livediagnostics.monitor.azure.com/"
    )

    assert connection.instrumentation_key == _KEY
    assert connection.ingestion_endpoint == "https://westeurope-5.in.applicationinsights.azure.com"
    assert connection.track_url == "https://westeurope-5.in.applicationinsights.azure.com/v2/track"
    assert "liveendpoint" in connection.properties


def test_telemetry_parse_matches_keys_case_insensitively() -> None:
    """Accept keys in any case and ignore empty segments.

    Returns:
        None: Assertions validate case-insensitive parsing.

    Raises:
        AssertionError: Raised when parsing differs.
    """

    connection = telemetry_parse_connection_string(f" instrumentationkey = {_KEY} ;; ")

    assert connection.instrumentation_key == _KEY
    assert connection.ingestion_endpoint == DEFAULT_INGESTION_ENDPOINT


@pytest.mark.parametrize(
    ("connection_string", "expected_endpoint"),
    [
        (f"InstrumentationKey={_KEY};EndpointSuffix=applicationinsights.us", "https://dc.applicationinsights.us"),
        (
            f"InstrumentationKey={_KEY};EndpointSuffix=applicationinsights.us;Location=usgovvirginia",
            "https://usgovvirginia.dc.applicationinsights.us",
        ),
    ],
)
def test_telemetry_parse_builds_endpoint_from_suffix(connection_string: str, expected_endpoint: str) -> None:
    """Derive the ingestion endpoint from suffix and optional location.

    Args:
        connection_string: Raw connection string.
        expected_endpoint: Expected ingestion endpoint.

    Returns:
        None: Assertions validate endpoint derivation.

    Raises:
        AssertionError: Raised when derivation differs.
    """

    assert telemetry_parse_connection_string(connection_string).ingestion_endpoint == expected_endpoint


@pytest.mark.parametrize(
    "connection_string",
    [
        "",
        "   ",
        "IngestionEndpoint=https://example.com",
        "InstrumentationKey=",
        f"InstrumentationKey={_KEY};garbage",
        f"InstrumentationKey={_KEY};IngestionEndpoint=ftp://example.com",
        f"InstrumentationKey={_KEY};IngestionEndpoint=https://localhost:notaport",
        f"InstrumentationKey={_KEY};IngestionEndpoint=https://localhost:99999",
        f"InstrumentationKey={_KEY};IngestionEndpoint=https://",
    ],
)
def test_telemetry_parse_rejects_invalid_connection_strings(connection_string: str) -> None:
    """Raise configuration errors for blank, malformed or keyless strings.

    Args:
        connection_string: Invalid connection string.

    Returns:
        None: Assertions validate rejection.

    Raises:
        AssertionError: Raised when an invalid string is accepted.
    """

    with pytest.raises(TelemetryConfigurationError):
        telemetry_parse_connection_string(connection_string)


def test_telemetry_configuration_error_is_value_error() -> None:
    """Expose configuration failures as ValueError for generic callers.

    Returns:
        None: Assertions validate exception hierarchy.

    Raises:
        AssertionError: Raised when hierarchy differs.
    """

    with pytest.raises(ValueError):
        telemetry_parse_connection_string("garbage")


@pytest.mark.parametrize("connection_string", [None, "", "  "])
def test_telemetry_create_channel_disables_for_absent_values(connection_string: str | None) -> None:
    """Create a disabled channel when no connection string is configured.

    Args:
        connection_string: Absent or blank value.

    Returns:
        None: Assertions validate disabled channel.

    Raises:
        AssertionError: Raised when an enabled channel is created.
    """

    channel = telemetry_create_channel(connection_string)

    assert isinstance(channel, DisabledTelemetryChannel)
    assert channel.telemetry_enabled is False
    assert channel.instrumentation_key is None
    assert channel.telemetry_flush() == 0


def test_telemetry_create_channel_enables_for_valid_value() -> None:
    """Create the shipping channel for a valid connection string.

    Returns:
        None: Assertions validate enabled channel.

    Raises:
        AssertionError: Raised when channel is not enabled.
    """

    channel = telemetry_create_channel(f"InstrumentationKey={_KEY}", role_name="web")

    assert isinstance(channel, ApplicationInsightsTelemetryChannel)
    assert channel.telemetry_enabled is True
    assert channel.instrumentation_key == _KEY


def test_telemetry_create_channel_rejects_invalid_value() -> None:
    """Fail fast when a configured connection string is invalid.

    Returns:
        None: Assertions validate startup-fatal configuration errors.

    Raises:
        AssertionError: Raised when invalid configuration is accepted.
    """

    with pytest.raises(TelemetryConfigurationError):
        telemetry_create_channel("not-a-connection-string")


def test_telemetry_create_channel_rejects_endpoint_with_invalid_port() -> None:
    """Fail at startup instead of at flush time when the endpoint port is not numeric.

    Returns:
        None: Assertions validate startup-fatal endpoint validation.

    Raises:
        AssertionError: Raised when the endpoint is accepted.
    """

    with pytest.raises(TelemetryConfigurationError, match="not a valid URL"):
        telemetry_create_channel(f"InstrumentationKey={_KEY};IngestionEndpoint=https://localhost:notaport")
