"""Typed runtime settings with dotenv, JSON file support and startup validation."""

import os
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, JsonConfigSettingsSource, PydanticBaseSettingsSource, SettingsConfigDict

_PACKAGE_ROOT = Path(__file__).resolve().parents[1]


class SettingsLoadError(RuntimeError):
    """Raised when runtime settings cannot be loaded or validated."""


class HostEnvironment(str, Enum):
    """Well-known hosting environment names.

    Only `DEVELOPMENT` is treated as local development. Custom environment
    names are accepted by settings and behave like any non-development host.
    """

    DEVELOPMENT = "Development"
    STAGING = "Staging"
    PRODUCTION = "Production"


class ConnectionStrings(BaseModel):
    """Named connection string entries.

    Attributes:
        application_insights: Telemetry backend connection string.
    """

    application_insights: str | None = None


class AppSettings(BaseSettings):
    """Application settings for host runtime, logging and telemetry.

    Environment variable names map directly to field names in uppercase.
    Nested entries use a double underscore, for example
    `CONNECTION_STRINGS__APPLICATION_INSIGHTS`.

    Attributes:
        environment_name: Runtime environment label.
        application_name: Human-readable application name.
        application_host: Host interface for web server binding.
        application_port: Web server port.
        forwarded_allow_ips: Proxy addresses trusted for forwarded headers.
        log_level: Default minimum log level.
        log_format: Console rendering mode (`console` or `json`).
        log_level_overrides: Per-logger level overrides.
        connection_strings: Named connection string entries.
        applicationinsights_connection_string: Fallback telemetry connection string.
        telemetry_role_name: Cloud role name attached to telemetry.
        telemetry_flush_interval_seconds: Delay between telemetry flushes.
        telemetry_max_batch_size: Maximum envelopes per transport request.
        telemetry_max_buffer_size: Maximum buffered envelopes before dropping oldest.
        telemetry_request_timeout_seconds: Telemetry transport timeout.
        hsts_max_age_seconds: HSTS max-age directive.
        hsts_include_subdomains: Whether to emit `includeSubDomains`.
        hsts_preload: Whether to emit `preload`.
        hsts_excluded_hosts: Hosts that never receive the HSTS header.
        error_handler_path: Redirect target for unhandled request errors.
        static_root: Directory served by the static files middleware.
        templates_root: Directory holding controller view templates.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment_name: str = Field(default=HostEnvironment.PRODUCTION.value, min_length=1)
    application_name: str = Field(default="AZ204WebApp", min_length=1)
    application_host: str = Field(default="0.0.0.0")
    application_port: int = Field(default=8000, ge=1, le=65535)
    forwarded_allow_ips: str = Field(default="127.0.0.1")
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")
    log_level_overrides: dict[str, str] = Field(
        default_factory=lambda: {
            "uvicorn": "WARNING",
            "starlette": "WARNING",
            "fastapi": "WARNING",
            "uvicorn.error": "INFO",
            "app.hosting.lifetime": "INFO",
        }
    )
    connection_strings: ConnectionStrings = Field(default_factory=ConnectionStrings)
    applicationinsights_connection_string: str | None = Field(default=None)
    telemetry_role_name: str | None = Field(default=None)
    telemetry_flush_interval_seconds: float = Field(default=5.0, gt=0)
    telemetry_max_batch_size: int = Field(default=100, ge=1)
    telemetry_max_buffer_size: int = Field(default=5000, ge=1)
    telemetry_request_timeout_seconds: float = Field(default=10.0, gt=0)
    hsts_max_age_seconds: int = Field(default=30 * 24 * 60 * 60, ge=0)
    hsts_include_subdomains: bool = Field(default=False)
    hsts_preload: bool = Field(default=False)
    hsts_excluded_hosts: list[str] = Field(default_factory=lambda: ["localhost", "127.0.0.1", "[::1]"])
    error_handler_path: str = Field(default="/Home/Error")
    static_root: Path = Field(default=_PACKAGE_ROOT / "web" / "static")
    templates_root: Path = Field(default=_PACKAGE_ROOT / "web" / "templates")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls, deep_merge=True),
            file_secret_settings,
        )

    @field_validator("environment_name", "application_name")
    @classmethod
    def _validate_non_empty_string(cls, value: str) -> str:
        stripped_value = value.strip()
        if not stripped_value:
            raise ValueError("value must not be blank")
        return stripped_value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        return config_normalize_log_level(value)

    @field_validator("log_level_overrides")
    @classmethod
    def _validate_log_level_overrides(cls, value: dict[str, str]) -> dict[str, str]:
        return {logger_name.strip(): config_normalize_log_level(level) for logger_name, level in value.items()}

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, value: str) -> str:
        normalized_value = value.strip().lower()
        if normalized_value not in ("console", "json"):
            raise ValueError("log_format must be `console` or `json`")
        return normalized_value

    @field_validator("error_handler_path")
    @classmethod
    def _validate_error_handler_path(cls, value: str) -> str:
        stripped_value = value.strip()
        if not stripped_value.startswith("/"):
            raise ValueError("error_handler_path must start with `/`")
        return stripped_value

    @property
    def host_environment(self) -> HostEnvironment | None:
        """Return the well-known environment matching `environment_name`, if any."""

        return config_parse_host_environment(self.environment_name)

    @property
    def is_development(self) -> bool:
        """Return whether the host runs in local-development mode."""

        return self.host_environment is HostEnvironment.DEVELOPMENT


_LOG_LEVEL_NAMES = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")


def config_normalize_log_level(level: str) -> str:
    """Normalize a log level name to its canonical uppercase form.

    Args:
        level: Level name in any case. `WARN` and `FATAL` aliases are accepted.

    Returns:
        str: Canonical level name.

    Raises:
        ValueError: Raised when the level name is unknown.
    """

    normalized_level = level.strip().upper()
    normalized_level = {"WARN": "WARNING", "FATAL": "CRITICAL"}.get(normalized_level, normalized_level)
    if normalized_level not in _LOG_LEVEL_NAMES:
        raise ValueError(f"unknown log level: {level}")
    return normalized_level


def config_parse_host_environment(environment_name: str) -> HostEnvironment | None:
    """Match an environment name against well-known environments.

    Args:
        environment_name: Environment label, compared case-insensitively.

    Returns:
        HostEnvironment | None: Matching environment or None for custom names.
    """

    normalized_name = environment_name.strip().lower()
    for host_environment in HostEnvironment:
        if host_environment.value.lower() == normalized_name:
            return host_environment
    return None


def config_settings_files(content_root: Path, environment_name: str) -> list[Path]:
    """Return existing JSON settings files in ascending precedence order.

    Args:
        content_root: Directory holding `appsettings*.json` files.
        environment_name: Environment used to select the overlay file.

    Returns:
        list[Path]: Base file first, environment overlay last; missing files are skipped.
    """

    candidate_files = [
        content_root / "appsettings.json",
        content_root / f"appsettings.{environment_name}.json",
    ]
    return [candidate_file for candidate_file in candidate_files if candidate_file.is_file()]


def config_load_settings(
    environment_name: str | None = None,
    content_root: Path | None = None,
    **overrides: object,
) -> AppSettings:
    """Load and validate runtime settings from environment, dotenv and JSON files.

    Args:
        environment_name: Optional environment override, typically from the command line.
        content_root: Directory searched for JSON settings files. Defaults to the working directory.
        **overrides: Explicit setting values with the highest precedence.

    Returns:
        AppSettings: Validated runtime settings object.

    Raises:
        SettingsLoadError: Raised when required settings are missing or invalid.
    """

    resolved_environment_name = (
        environment_name
        or os.environ.get("APP_ENVIRONMENT")
        or os.environ.get("ENVIRONMENT_NAME")
        or HostEnvironment.PRODUCTION.value
    ).strip()
    settings_files = config_settings_files(
        content_root=content_root or Path.cwd(),
        environment_name=resolved_environment_name,
    )

    class _FileBackedSettings(AppSettings):
        model_config = SettingsConfigDict(json_file=settings_files or None)

    try:
        return _FileBackedSettings(environment_name=resolved_environment_name, **overrides)
    except ValidationError as error:
        raise SettingsLoadError(
            f"Startup configuration validation failed. Update appsettings, .env or environment variables. "
            f"Details: {error}"
        ) from error


def config_resolve_telemetry_connection_string(settings: AppSettings) -> str | None:
    """Resolve the telemetry connection string from the named entry or its fallback key.

    Args:
        settings: Validated application settings.

    Returns:
        str | None: First non-blank value found, or None when both are absent.
    """

    for candidate in (
        settings.connection_strings.application_insights,
        settings.applicationinsights_connection_string,
    ):
        if candidate is not None and candidate.strip():
            return candidate.strip()
    return None
