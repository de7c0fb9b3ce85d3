"""Application bootstrap wiring for startup validation and dependency assembly."""

from typing import TextIO

import structlog
from fastapi import FastAPI

from app.api import create_api_application
from app.api.authorization import AuthorizationPolicyRegistry
from app.api.controllers import controller_create_default_registry
from app.config import AppSettings, config_load_settings, config_resolve_telemetry_connection_string
from app.health import health_create_default_registry
from app.logs import logs_configure, logs_get_lifetime_logger
from app.telemetry import TelemetryChannelPort, telemetry_create_channel

logger = structlog.get_logger(__name__)


def bootstrap_create_telemetry_channel(settings: AppSettings) -> TelemetryChannelPort:
    """Create the telemetry channel from the resolved connection string.

    Args:
        settings: Validated application settings.

    Returns:
        TelemetryChannelPort: Shipping channel, or a disabled channel when no connection string resolves.

    Raises:
        TelemetryConfigurationError: Raised when a connection string is present but invalid.
    """

    return telemetry_create_channel(
        connection_string=config_resolve_telemetry_connection_string(settings),
        role_name=settings.telemetry_role_name or settings.application_name,
        max_batch_size=settings.telemetry_max_batch_size,
        max_buffer_size=settings.telemetry_max_buffer_size,
        request_timeout_seconds=settings.telemetry_request_timeout_seconds,
    )


def bootstrap_create_application(
    settings: AppSettings | None = None,
    log_stream: TextIO | None = None,
    policy_registry: AuthorizationPolicyRegistry | None = None,
) -> FastAPI:
    """Assemble the runtime application after validating startup configuration.

    Startup is linear: settings, telemetry channel, logging, health checks,
    controllers, pipeline, then the startup log line. Any failure propagates.

    Args:
        settings: Pre-loaded settings; loaded from the environment when omitted.
        log_stream: Console log stream override, stderr when omitted.
        policy_registry: Optional authorization policies for controller actions.

    Returns:
        FastAPI: Fully initialized FastAPI application instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
        TelemetryConfigurationError: Raised when the telemetry connection string is invalid.
        ValueError: Raised when pipeline composition fails.
    """

    resolved_settings = settings or config_load_settings()
    telemetry_channel = bootstrap_create_telemetry_channel(resolved_settings)
    logs_configure(
        log_level=resolved_settings.log_level,
        log_format=resolved_settings.log_format,
        level_overrides=resolved_settings.log_level_overrides,
        telemetry_channel=telemetry_channel,
        stream=log_stream,
    )
    if not telemetry_channel.telemetry_enabled:
        logger.warning(
            "telemetry_disabled",
            reason="no telemetry connection string configured",
            keys=["CONNECTION_STRINGS__APPLICATION_INSIGHTS", "APPLICATIONINSIGHTS_CONNECTION_STRING"],
        )

    application = create_api_application(
        settings=resolved_settings,
        health_registry=health_create_default_registry(),
        controller_registry=controller_create_default_registry(),
        telemetry_channel=telemetry_channel,
        policy_registry=policy_registry,
    )
    application.state.telemetry_channel = telemetry_channel

    logs_get_lifetime_logger().info(
        "Application started successfully",
        environment=resolved_settings.environment_name,
        telemetry_enabled=telemetry_channel.telemetry_enabled,
    )
    return application
