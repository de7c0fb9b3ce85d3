"""Health-check registry mapping names to check callables."""

from __future__ import annotations

import time
from typing import Callable

import structlog

from app.domain import HealthCheckResult, HealthReport, HealthStatus

HealthCheck = Callable[[], HealthCheckResult]

logger = structlog.get_logger(__name__)


class HealthCheckRegistry:
    """Ordered collection of named health checks.

    Checks are zero-argument callables returning `HealthCheckResult`. The
    registry is populated during startup and only read afterwards.
    """

    def __init__(self) -> None:
        self._checks: dict[str, HealthCheck] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._checks

    def __len__(self) -> int:
        return len(self._checks)

    def health_register(self, name: str, check: HealthCheck) -> "HealthCheckRegistry":
        """Register one named check.

        Args:
            name: Unique check name.
            check: Zero-argument callable returning a health result.

        Returns:
            HealthCheckRegistry: The registry itself, for chained registration.

        Raises:
            ValueError: Raised when the name is blank or already registered.
        """

        normalized_name = name.strip()
        if not normalized_name:
            raise ValueError("health check name must not be blank")
        if normalized_name in self._checks:
            raise ValueError(f"health check already registered: {normalized_name}")
        if not callable(check):
            raise ValueError("check must be callable")

        self._checks[normalized_name] = check
        return self

    def health_check_names(self) -> tuple[str, ...]:
        """Return registered check names in registration order."""

        return tuple(self._checks)

    def health_run(self) -> HealthReport:
        """Run every registered check and aggregate the worst status.

        Returns:
            HealthReport: Aggregate status with per-check entries.

        Raises:
            RuntimeError: This method does not raise; check failures are reported as Unhealthy.
        """

        started_at = time.perf_counter()
        entries: dict[str, HealthCheckResult] = {}
        for name, check in self._checks.items():
            try:
                result = check()
            except Exception as error:
                logger.warning("health_check_failed", check=name, error=str(error))
                result = HealthCheckResult.unhealthy(description=str(error) or type(error).__name__)
            entries[name] = result

        aggregate_status = HealthStatus.HEALTHY
        for result in entries.values():
            if result.status.severity > aggregate_status.severity:
                aggregate_status = result.status

        return HealthReport(
            status=aggregate_status,
            entries=entries,
            duration_ms=(time.perf_counter() - started_at) * 1000.0,
        )


def health_self_check() -> HealthCheckResult:
    """Report the process itself as healthy; calls no dependencies."""

    return HealthCheckResult.healthy()


def health_create_default_registry() -> HealthCheckRegistry:
    """Create the default registry containing the single `self` liveness check."""

    return HealthCheckRegistry().health_register("self", health_self_check)
