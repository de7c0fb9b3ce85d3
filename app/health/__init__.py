"""Health-check package for liveness checks and aggregation."""

from .registry import HealthCheckRegistry, HealthCheck, health_create_default_registry, health_self_check

__all__ = ["HealthCheckRegistry", "HealthCheck", "health_create_default_registry", "health_self_check"]
