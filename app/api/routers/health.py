"""Health endpoint router composition for registered liveness checks."""

from fastapi import APIRouter, status
from fastapi.responses import PlainTextResponse

from app.domain import HealthStatus
from app.health import HealthCheckRegistry

HEALTH_PATH = "/health"


def api_create_health_router(health_registry: HealthCheckRegistry) -> APIRouter:
    """Create health-check router reporting the aggregate status of all registered checks.

    Args:
        health_registry: Registry of named health checks.

    Returns:
        APIRouter: Router exposing `/health` endpoint.

    Raises:
        ValueError: Raised when health_registry is invalid.
    """

    if health_registry is None:
        raise ValueError("health_registry must not be None")

    router = APIRouter(tags=["health"])

    @router.api_route(HEALTH_PATH, methods=["GET", "HEAD"])
    def api_health_status() -> PlainTextResponse:
        """Return aggregate health state as plain text.

        Returns:
            PlainTextResponse: `Healthy` or `Degraded` with HTTP 200, `Unhealthy` with HTTP 503.

        Raises:
            RuntimeError: This handler does not raise; check failures are reported as Unhealthy.
        """

        report = health_registry.health_run()
        status_code = (
            status.HTTP_503_SERVICE_UNAVAILABLE
            if report.status is HealthStatus.UNHEALTHY
            else status.HTTP_200_OK
        )
        return PlainTextResponse(
            content=report.status.value,
            status_code=status_code,
            headers={"Cache-Control": "no-store, no-cache", "Pragma": "no-cache"},
        )

    return router
