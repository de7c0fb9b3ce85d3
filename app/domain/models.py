"""Typed domain models shared across runtime layers.

This module provides simple data contracts for cross-layer communication
between the host bootstrap, health checks, routing and controllers.
"""

from dataclasses import dataclass, field
from enum import Enum


class HealthStatus(str, Enum):
    """Health states ordered from best to worst."""

    HEALTHY = "Healthy"
    DEGRADED = "Degraded"
    UNHEALTHY = "Unhealthy"

    @property
    def severity(self) -> int:
        """Return ordering weight where larger values are worse."""

        return _HEALTH_STATUS_SEVERITY[self]


_HEALTH_STATUS_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.UNHEALTHY: 2,
}


@dataclass(frozen=True)
class HealthCheckResult:
    """Result contract returned by one health check.

    Attributes:
        status: Check outcome.
        description: Optional message suitable for operational diagnostics.
    """

    status: HealthStatus
    description: str | None = None

    @classmethod
    def healthy(cls, description: str | None = None) -> "HealthCheckResult":
        return cls(status=HealthStatus.HEALTHY, description=description)

    @classmethod
    def degraded(cls, description: str | None = None) -> "HealthCheckResult":
        return cls(status=HealthStatus.DEGRADED, description=description)

    @classmethod
    def unhealthy(cls, description: str | None = None) -> "HealthCheckResult":
        return cls(status=HealthStatus.UNHEALTHY, description=description)


@dataclass(frozen=True)
class HealthReport:
    """Aggregate result of running every registered health check.

    Attributes:
        status: Worst status across all entries, Healthy when there are none.
        entries: Individual check results keyed by check name.
        duration_ms: Total time spent running checks.
    """

    status: HealthStatus
    entries: dict[str, HealthCheckResult] = field(default_factory=dict)
    duration_ms: float = 0.0


@dataclass(frozen=True)
class RouteValues:
    """Resolved route values for one controller dispatch.

    Attributes:
        controller: Controller name as supplied by the path or its default.
        action: Action name as supplied by the path or its default.
        id: Optional trailing identifier segment.
        extra: Any further template parameters.
    """

    controller: str
    action: str
    id: str | None = None
    extra: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ErrorViewModel:
    """View model rendered by the error page.

    Attributes:
        request_id: Correlation id of the failed request, if known.
    """

    request_id: str | None

    @property
    def show_request_id(self) -> bool:
        return bool(self.request_id)
