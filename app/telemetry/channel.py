"""Telemetry channel implementations buffering envelopes for batched ingestion."""

from __future__ import annotations

import http.client
import json
import socket
import threading
from collections import deque
from typing import Any, Final
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

import structlog

from .connection_string import telemetry_parse_connection_string
from .errors import TelemetryTransportError
from .interfaces import TelemetryChannelPort, TelemetryConnection

logger = structlog.get_logger(__name__)


class ApplicationInsightsTelemetryChannel(TelemetryChannelPort):
    """Channel shipping envelopes to the ingestion `v2/track` endpoint.

    Enqueueing only appends to a bounded in-memory buffer; the oldest
    envelope is dropped when the buffer is full. Network I/O happens in
    `telemetry_flush`, which the host calls periodically and at shutdown.
    """

    _USER_AGENT: Final[str] = "az204-webapp/1.0 (Python/urllib.request)"

    def __init__(
        self,
        connection: TelemetryConnection,
        role_name: str | None = None,
        max_batch_size: int = 100,
        max_buffer_size: int = 5000,
        request_timeout_seconds: float = 10.0,
    ):
        """Initialize telemetry channel.

        Args:
            connection: Parsed connection settings.
            role_name: Optional cloud role name tag.
            max_batch_size: Maximum envelopes per transport request.
            max_buffer_size: Maximum buffered envelopes.
            request_timeout_seconds: HTTP request timeout in seconds.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when sizing or timeout values are invalid.
        """

        if connection is None:
            raise ValueError("connection must not be None")
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be >= 1")
        if max_buffer_size < 1:
            raise ValueError("max_buffer_size must be >= 1")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")

        self._connection = connection
        self._max_batch_size = max_batch_size
        self._request_timeout_seconds = request_timeout_seconds
        self._buffer: deque[dict[str, Any]] = deque(maxlen=max_buffer_size)
        self._flush_lock = threading.Lock()
        self._dropped_count = 0
        self._context_tags = {"ai.cloud.roleInstance": socket.gethostname()}
        if role_name:
            self._context_tags["ai.cloud.role"] = role_name

    @property
    def telemetry_enabled(self) -> bool:
        return True

    @property
    def instrumentation_key(self) -> str | None:
        return self._connection.instrumentation_key

    @property
    def dropped_count(self) -> int:
        """Return how many envelopes were discarded by overflow or transport failures."""

        return self._dropped_count

    def telemetry_pending_count(self) -> int:
        """Return the number of buffered envelopes awaiting flush."""

        return len(self._buffer)

    def telemetry_enqueue(self, envelope: dict[str, Any]) -> None:
        """Buffer one envelope, stamping channel-level context tags.

        Args:
            envelope: Serializable telemetry envelope.

        Returns:
            None: Envelope is buffered in memory.
        """

        tags = envelope.setdefault("tags", {})
        for tag_name, tag_value in self._context_tags.items():
            tags.setdefault(tag_name, tag_value)
        if len(self._buffer) == self._buffer.maxlen:
            self._dropped_count += 1
        self._buffer.append(envelope)

    def telemetry_flush(self) -> int:
        """Send buffered envelopes in batches until the buffer is empty.

        Transport failures drop the failed batch, are logged at warning level
        and stop the current flush; remaining envelopes wait for the next one.

        Returns:
            int: Number of envelopes accepted by the ingestion endpoint.

        Raises:
            RuntimeError: This method does not raise transport errors.
        """

        accepted_total = 0
        with self._flush_lock:
            while self._buffer:
                batch = self._telemetry_drain_batch()
                try:
                    accepted_total += self._telemetry_http_post(batch)
                except TelemetryTransportError as error:
                    self._dropped_count += len(batch)
                    logger.warning(
                        "telemetry_flush_failed",
                        error=str(error),
                        status_code=error.status_code,
                        dropped=len(batch),
                    )
                    break
        return accepted_total

    def _telemetry_drain_batch(self) -> list[dict[str, Any]]:
        batch: list[dict[str, Any]] = []
        while self._buffer and len(batch) < self._max_batch_size:
            batch.append(self._buffer.popleft())
        return batch

    def _telemetry_http_post(self, batch: list[dict[str, Any]]) -> int:
        """Execute one HTTP POST of a JSON envelope batch.

        Args:
            batch: Envelopes to send.

        Returns:
            int: Number of envelopes accepted by the endpoint.

        Raises:
            TelemetryTransportError: Raised for network failures and non-success HTTP status.
        """

        body = json.dumps(batch, separators=(",", ":")).encode("utf-8")
        try:
            request = Request(
                self._connection.track_url,
                data=body,
                method="POST",
                headers={"Content-Type": "application/json", "User-Agent": self._USER_AGENT},
            )
            with urlopen(request, timeout=self._request_timeout_seconds) as response:
                status_code = int(response.getcode() or 200)
                payload = response.read()
        except HTTPError as error:
            raise TelemetryTransportError(f"telemetry endpoint returned HTTP {error.code}", status_code=error.code) from error
        except (URLError, TimeoutError, OSError, http.client.HTTPException, ValueError) as error:
            raise TelemetryTransportError(f"telemetry transport request failed: {error}") from error

        if status_code >= 400:
            raise TelemetryTransportError(f"telemetry endpoint returned HTTP {status_code}", status_code=status_code)

        return self._telemetry_accepted_count(payload=payload, sent_count=len(batch))

    def _telemetry_accepted_count(self, payload: bytes, sent_count: int) -> int:
        try:
            response_body = json.loads(payload or b"{}")
        except ValueError:
            return sent_count
        if not isinstance(response_body, dict):
            return sent_count

        try:
            accepted_count = int(response_body.get("itemsAccepted", sent_count))
        except (TypeError, ValueError):
            return sent_count
        if accepted_count < sent_count:
            self._dropped_count += sent_count - accepted_count
            logger.warning(
                "telemetry_partially_accepted",
                sent=sent_count,
                accepted=accepted_count,
                errors=response_body.get("errors", []),
            )
        return accepted_count


class DisabledTelemetryChannel(TelemetryChannelPort):
    """No-op channel used when no telemetry connection string is configured."""

    @property
    def telemetry_enabled(self) -> bool:
        return False

    @property
    def instrumentation_key(self) -> str | None:
        return None

    def telemetry_enqueue(self, envelope: dict[str, Any]) -> None:
        _ = envelope

    def telemetry_flush(self) -> int:
        return 0


def telemetry_create_channel(
    connection_string: str | None,
    role_name: str | None = None,
    max_batch_size: int = 100,
    max_buffer_size: int = 5000,
    request_timeout_seconds: float = 10.0,
) -> TelemetryChannelPort:
    """Create the telemetry channel for a resolved connection string.

    Args:
        connection_string: Resolved connection string, or None when absent.
        role_name: Optional cloud role name tag.
        max_batch_size: Maximum envelopes per transport request.
        max_buffer_size: Maximum buffered envelopes.
        request_timeout_seconds: HTTP request timeout in seconds.

    Returns:
        TelemetryChannelPort: Shipping channel, or a disabled channel when no connection string is set.

    Raises:
        TelemetryConfigurationError: Raised when a connection string is present but invalid.
    """

    if connection_string is None or not connection_string.strip():
        return DisabledTelemetryChannel()

    return ApplicationInsightsTelemetryChannel(
        connection=telemetry_parse_connection_string(connection_string),
        role_name=role_name,
        max_batch_size=max_batch_size,
        max_buffer_size=max_buffer_size,
        request_timeout_seconds=request_timeout_seconds,
    )
