"""Domain models used across application layer boundaries."""

from .models import ErrorViewModel, HealthCheckResult, HealthReport, HealthStatus, RouteValues

__all__ = ["ErrorViewModel", "HealthCheckResult", "HealthReport", "HealthStatus", "RouteValues"]
