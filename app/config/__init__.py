"""Configuration package for runtime settings and startup validation."""

from .settings import (
    AppSettings,
    ConnectionStrings,
    HostEnvironment,
    SettingsLoadError,
    config_load_settings,
    config_normalize_log_level,
    config_parse_host_environment,
    config_resolve_telemetry_connection_string,
    config_settings_files,
)

__all__ = [
    "AppSettings",
    "ConnectionStrings",
    "HostEnvironment",
    "SettingsLoadError",
    "config_load_settings",
    "config_normalize_log_level",
    "config_parse_host_environment",
    "config_resolve_telemetry_connection_string",
    "config_settings_files",
]
