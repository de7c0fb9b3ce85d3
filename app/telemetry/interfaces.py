"""Typed interfaces for telemetry-layer responsibilities."""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class TelemetryConnection:
    """Parsed telemetry backend connection settings.

    Attributes:
        instrumentation_key: Target resource key.
        ingestion_endpoint: Base URL of the ingestion service, without trailing slash.
        properties: All key/value pairs of the original connection string.
    """

    instrumentation_key: str
    ingestion_endpoint: str
    properties: dict[str, str]

    @property
    def track_url(self) -> str:
        return f"{self.ingestion_endpoint}/v2/track"


class TelemetryChannelPort(Protocol):
    """Port definition for buffering and shipping telemetry envelopes."""

    @property
    def telemetry_enabled(self) -> bool:
        """Return whether envelopes are actually shipped."""

    @property
    def instrumentation_key(self) -> str | None:
        """Return the target resource key, or None when disabled."""

    def telemetry_enqueue(self, envelope: dict[str, Any]) -> None:
        """Buffer one envelope without performing I/O.

        Args:
            envelope: Serializable telemetry envelope.
        """

    def telemetry_flush(self) -> int:
        """Send every buffered envelope.

        Returns:
            int: Number of envelopes accepted by the transport.
        """
