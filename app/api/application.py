"""FastAPI application factory for the web host.

This module defines the request pipeline composition: middleware order,
the health endpoint and the conventional controller route.
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware

from app.config import AppSettings
from app.health import HealthCheckRegistry
from app.logs import LIFETIME_LOGGER_NAME
from app.telemetry import TelemetryChannelPort

from .authorization import AuthorizationPolicyRegistry
from .controllers import ControllerRegistry
from .middleware import (
    AuthorizationMiddleware,
    ExceptionHandlerMiddleware,
    HstsMiddleware,
    RequestTelemetryMiddleware,
    RoutingMiddleware,
    StaticFilesMiddleware,
)
from .routers import HEALTH_PATH, api_create_controller_router, api_create_health_router
from .routing import ControllerRouteTable, RoutePattern

DEFAULT_ROUTE_TEMPLATE = "{controller=Home}/{action=Index}/{id?}"

logger = structlog.get_logger(__name__)
lifetime_logger = structlog.get_logger(LIFETIME_LOGGER_NAME)


def create_api_application(
    settings: AppSettings,
    health_registry: HealthCheckRegistry,
    controller_registry: ControllerRegistry,
    telemetry_channel: TelemetryChannelPort,
    policy_registry: AuthorizationPolicyRegistry | None = None,
    route_template: str = DEFAULT_ROUTE_TEMPLATE,
) -> FastAPI:
    """Create the FastAPI application instance for the host.

    Args:
        settings: Validated application settings.
        health_registry: Health checks exposed on `/health`.
        controller_registry: Controllers reachable through the conventional route.
        telemetry_channel: Channel receiving request telemetry.
        policy_registry: Authorization policies; an empty registry when omitted.
        route_template: Conventional controller route template.

    Returns:
        FastAPI: Framework application instance with the full middleware pipeline.

    Raises:
        ValueError: Raised when the route template is invalid or an action requires an unknown policy.
    """

    resolved_policy_registry = policy_registry or AuthorizationPolicyRegistry()
    for action in controller_registry.controller_actions():
        resolved_policy_registry.authorization_verify(action.policies)

    route_table = ControllerRouteTable(
        pattern=RoutePattern(route_template),
        controller_registry=controller_registry,
        fixed_endpoints={HEALTH_PATH: "health"},
    )
    templates = Jinja2Templates(directory=str(settings.templates_root))
    templates.env.globals["application_name"] = settings.application_name
    templates.env.globals["environment_name"] = settings.environment_name

    application = FastAPI(
        title=settings.application_name,
        debug=settings.is_development,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.is_development else None,
        middleware=api_build_middleware(
            settings=settings,
            route_table=route_table,
            policy_registry=resolved_policy_registry,
            telemetry_channel=telemetry_channel,
        ),
        lifespan=api_create_lifespan(
            telemetry_channel=telemetry_channel,
            flush_interval_seconds=settings.telemetry_flush_interval_seconds,
        ),
    )
    application.state.settings = settings
    application.state.route_table = route_table

    application.include_router(api_create_health_router(health_registry=health_registry))
    application.include_router(api_create_controller_router(templates=templates))

    return application


def api_build_middleware(
    settings: AppSettings,
    route_table: ControllerRouteTable,
    policy_registry: AuthorizationPolicyRegistry,
    telemetry_channel: TelemetryChannelPort,
) -> list[Middleware]:
    """Build the ordered middleware list, outermost first.

    Request telemetry wraps the whole pipeline. The exception handler and
    HSTS are only present outside development.

    Args:
        settings: Validated application settings.
        route_table: Endpoint resolver used by routing middleware.
        policy_registry: Policies enforced by authorization middleware.
        telemetry_channel: Channel receiving request telemetry.

    Returns:
        list[Middleware]: Middleware definitions in execution order.
    """

    middleware = [Middleware(RequestTelemetryMiddleware, telemetry_channel=telemetry_channel)]
    if not settings.is_development:
        middleware.append(Middleware(ExceptionHandlerMiddleware, error_path=settings.error_handler_path))
        middleware.append(
            Middleware(
                HstsMiddleware,
                max_age_seconds=settings.hsts_max_age_seconds,
                include_subdomains=settings.hsts_include_subdomains,
                preload=settings.hsts_preload,
                excluded_hosts=settings.hsts_excluded_hosts,
            )
        )
    middleware.extend(
        [
            Middleware(HTTPSRedirectMiddleware),
            Middleware(StaticFilesMiddleware, directory=str(settings.static_root)),
            Middleware(RoutingMiddleware, resolver=route_table.routing_resolve),
            Middleware(AuthorizationMiddleware, policy_registry=policy_registry),
        ]
    )
    return middleware


def api_create_lifespan(telemetry_channel: TelemetryChannelPort, flush_interval_seconds: float):
    """Create the lifespan handler flushing telemetry periodically and at shutdown.

    Args:
        telemetry_channel: Channel to flush.
        flush_interval_seconds: Delay between periodic flushes.

    Returns:
        Callable: Lifespan context manager factory for FastAPI.
    """

    @asynccontextmanager
    async def _api_lifespan(_application: FastAPI) -> AsyncIterator[None]:
        flush_task: asyncio.Task[None] | None = None
        if telemetry_channel.telemetry_enabled:
            flush_task = asyncio.create_task(
                api_flush_telemetry_periodically(
                    telemetry_channel=telemetry_channel,
                    flush_interval_seconds=flush_interval_seconds,
                )
            )
        try:
            yield
        finally:
            lifetime_logger.info("Application is shutting down")
            if flush_task is not None:
                flush_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await flush_task
            await api_flush_telemetry(telemetry_channel)

    return _api_lifespan


async def api_flush_telemetry_periodically(telemetry_channel: TelemetryChannelPort, flush_interval_seconds: float) -> None:
    """Flush the telemetry channel forever at a fixed interval; cancelled at shutdown.

    A failed flush is logged and the loop keeps running.
    """

    while True:
        await asyncio.sleep(flush_interval_seconds)
        await api_flush_telemetry(telemetry_channel)


async def api_flush_telemetry(telemetry_channel: TelemetryChannelPort) -> int:
    """Flush the channel in the threadpool without letting errors escape.

    Args:
        telemetry_channel: Channel to flush.

    Returns:
        int: Envelopes accepted, zero when the flush failed.
    """

    try:
        return await run_in_threadpool(telemetry_channel.telemetry_flush)
    except Exception as error:
        logger.warning("telemetry_flush_unexpected_error", error=repr(error))
        return 0
