"""Tests for host bootstrap wiring and the command-line entrypoint."""

from __future__ import annotations

import io
import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from app import main as main_module
from app.api import middleware as middleware_module
from app.bootstrap import bootstrap_create_application, bootstrap_create_telemetry_channel
from app.config import AppSettings
from app.telemetry import ApplicationInsightsTelemetryChannel, DisabledTelemetryChannel, TelemetryConfigurationError

_CONNECTION_STRING = (
    "InstrumentationKey=33333333-4444-5555-6666-777777777777;"
    "IngestionEndpoint=https://ingest.example.com/"
)


def test_bootstrap_starts_without_telemetry_connection_string() -> None:
    """Start with telemetry disabled and report it as a warning.

    Returns:
        None: Assertions validate non-fatal missing telemetry configuration.

    Raises:
        AssertionError: Raised when startup fails or the warning is missing.
    """

    log_stream = io.StringIO()

    application = bootstrap_create_application(settings=AppSettings(), log_stream=log_stream)
    with TestClient(application, base_url="https://testserver") as client:
        response = client.get("/health")

    output = log_stream.getvalue()
    assert response.status_code == 200
    assert response.text == "Healthy"
    assert isinstance(application.state.telemetry_channel, DisabledTelemetryChannel)
    assert "telemetry_disabled" in output
    assert "CONNECTION_STRINGS__APPLICATION_INSIGHTS" in output
    assert "APPLICATIONINSIGHTS_CONNECTION_STRING" in output
    assert "Application started successfully" in output
    assert "Application is shutting down" in output


def test_bootstrap_rejects_invalid_telemetry_connection_string() -> None:
    """Fail startup when a configured connection string is malformed.

    Returns:
        None: Assertions validate startup-fatal telemetry errors.

    Raises:
        AssertionError: Raised when startup succeeds.
    """

    with pytest.raises(TelemetryConfigurationError):
        bootstrap_create_application(
            settings=AppSettings(applicationinsights_connection_string="definitely-not-valid"),
            log_stream=io.StringIO(),
        )


def test_bootstrap_channel_uses_application_name_as_role() -> None:
    """Default the telemetry cloud role to the application name.

    Returns:
        None: Assertions validate channel construction.

    Raises:
        AssertionError: Raised when the channel is misconfigured.
    """

    channel = bootstrap_create_telemetry_channel(
        AppSettings(application_name="StoreFront", connection_strings={"application_insights": _CONNECTION_STRING})
    )
    envelope: dict[str, Any] = {"tags": {}}
    channel.telemetry_enqueue(envelope)

    assert isinstance(channel, ApplicationInsightsTelemetryChannel)
    assert envelope["tags"]["ai.cloud.role"] == "StoreFront"


def test_bootstrap_ships_request_and_trace_telemetry(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ship request and startup trace envelopes when the application stops.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate telemetry shipping.

    Raises:
        AssertionError: Raised when envelopes are not shipped.
    """

    posted_envelopes: list[dict[str, Any]] = []

    def _fake_post(self: ApplicationInsightsTelemetryChannel, batch: list[dict[str, Any]]) -> int:
        posted_envelopes.extend(json.loads(json.dumps(batch)))
        return len(batch)

    monkeypatch.setattr(ApplicationInsightsTelemetryChannel, "_telemetry_http_post", _fake_post)
    settings = AppSettings(connection_strings={"application_insights": _CONNECTION_STRING})

    application = bootstrap_create_application(settings=settings, log_stream=io.StringIO())
    with TestClient(application, base_url="https://testserver") as client:
        response = client.get("/health", headers={"Request-Id": "req-42"})

    request_envelopes = [
        envelope for envelope in posted_envelopes if envelope["data"]["baseType"] == "RequestData"
    ]
    messages = [
        envelope["data"]["baseData"]["message"]
        for envelope in posted_envelopes
        if envelope["data"]["baseType"] == "MessageData"
    ]
    assert response.status_code == 200
    assert len(request_envelopes) == 1
    assert request_envelopes[0]["data"]["baseData"]["id"] == "req-42"
    assert request_envelopes[0]["data"]["baseData"]["name"] == "GET /health"
    assert request_envelopes[0]["data"]["baseData"]["responseCode"] == "200"
    assert request_envelopes[0]["data"]["baseData"]["properties"]["endpoint"] == "health"
    assert "Application started successfully" in messages
    assert "Application is shutting down" in messages


_FROZEN_START = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)


class _FrozenClock(datetime):
    """Clock returning a fixed request start time."""

    @classmethod
    def now(cls, tz: Any = None) -> datetime:
        return _FROZEN_START


def _record_posted_envelopes(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    """Replace the telemetry transport with an in-memory recorder.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        list[dict[str, Any]]: Envelopes posted so far.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    posted_envelopes: list[dict[str, Any]] = []

    def _fake_post(self: ApplicationInsightsTelemetryChannel, batch: list[dict[str, Any]]) -> int:
        posted_envelopes.extend(json.loads(json.dumps(batch)))
        return len(batch)

    monkeypatch.setattr(ApplicationInsightsTelemetryChannel, "_telemetry_http_post", _fake_post)
    return posted_envelopes


def _request_envelopes(envelopes: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [envelope for envelope in envelopes if envelope["data"]["baseType"] == "RequestData"]


def test_bootstrap_flushes_telemetry_periodically_before_shutdown(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ship request telemetry on the flush interval while the application is running.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate periodic flushing.

    Raises:
        AssertionError: Raised when nothing is posted before shutdown.
    """

    posted_envelopes = _record_posted_envelopes(monkeypatch)
    settings = AppSettings(
        connection_strings={"application_insights": _CONNECTION_STRING},
        telemetry_flush_interval_seconds=0.01,
    )

    application = bootstrap_create_application(settings=settings, log_stream=io.StringIO())
    with TestClient(application, base_url="https://testserver") as client:
        response = client.get("/health")
        deadline = time.monotonic() + 2.0
        while not _request_envelopes(posted_envelopes) and time.monotonic() < deadline:
            time.sleep(0.01)
        posted_before_shutdown = list(posted_envelopes)

    assert response.status_code == 200
    assert len(_request_envelopes(posted_before_shutdown)) == 1
    assert application.state.telemetry_channel.telemetry_pending_count() == 0


def test_bootstrap_request_telemetry_is_stamped_with_request_start(monkeypatch: pytest.MonkeyPatch) -> None:
    """Stamp request envelopes with the time the request started.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate the request timestamp.

    Raises:
        AssertionError: Raised when the envelope carries another time.
    """

    posted_envelopes = _record_posted_envelopes(monkeypatch)
    monkeypatch.setattr(middleware_module, "datetime", _FrozenClock)
    settings = AppSettings(connection_strings={"application_insights": _CONNECTION_STRING})

    application = bootstrap_create_application(settings=settings, log_stream=io.StringIO())
    with TestClient(application, base_url="https://testserver") as client:
        client.get("/health")

    request_envelopes = _request_envelopes(posted_envelopes)
    assert len(request_envelopes) == 1
    assert request_envelopes[0]["time"] == "2024-05-06T07:08:09Z"


def test_main_runs_uvicorn_with_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Load settings from the content root and serve with command-line overrides.

    Args:
        tmp_path: Pytest temporary directory.
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate server launch arguments.

    Raises:
        AssertionError: Raised when launch arguments differ.
    """

    (tmp_path / "appsettings.json").write_text(
        json.dumps({"application_name": "FromJson", "application_port": 9000}),
        encoding="utf-8",
    )
    captured_calls: list[tuple[Any, dict[str, Any]]] = []
    monkeypatch.setattr(
        main_module.uvicorn,
        "run",
        lambda application, **kwargs: captured_calls.append((application, kwargs)),
    )

    main_module.main(["--environment", "Development", "--content-root", str(tmp_path), "--port", "8123"])

    application, kwargs = captured_calls[0]
    assert application.title == "FromJson"
    assert application.state.settings.is_development is True
    assert kwargs["port"] == 8123
    assert kwargs["host"] == "0.0.0.0"
    assert kwargs["log_config"] is None
    assert kwargs["proxy_headers"] is True
