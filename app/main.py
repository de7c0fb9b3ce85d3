"""Main module entrypoint for local runtime execution.

This module validates startup configuration and launches the web host.
"""

import argparse
from pathlib import Path

import uvicorn

from app.bootstrap import bootstrap_create_application
from app.config import config_load_settings


def main_parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse host command-line arguments.

    Args:
        argv: Argument list, defaults to `sys.argv[1:]`.

    Returns:
        argparse.Namespace: Parsed arguments.
    """

    argument_parser = argparse.ArgumentParser(description="AZ204 web application host")
    argument_parser.add_argument(
        "--environment",
        dest="environment",
        type=str,
        help="Hosting environment name, for example `Development` or `Production`",
    )
    argument_parser.add_argument(
        "--content-root",
        dest="content_root",
        type=Path,
        help="Directory holding appsettings.json files; defaults to the working directory",
    )
    argument_parser.add_argument("--host", dest="host", type=str, help="Bind address override")
    argument_parser.add_argument("--port", dest="port", type=int, help="Bind port override")
    return argument_parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Build the host and serve requests until shutdown.

    Args:
        argv: Optional argument list for programmatic invocation.

    Returns:
        None: Returns after the server shuts down.

    Raises:
        SettingsLoadError: Raised when configuration validation fails.
        TelemetryConfigurationError: Raised when the telemetry connection string is invalid.
    """

    parsed_arguments = main_parse_arguments(argv)
    overrides = {
        field_name: value
        for field_name, value in (
            ("application_host", parsed_arguments.host),
            ("application_port", parsed_arguments.port),
        )
        if value is not None
    }
    settings = config_load_settings(
        environment_name=parsed_arguments.environment,
        content_root=parsed_arguments.content_root,
        **overrides,
    )
    application = bootstrap_create_application(settings=settings)
    uvicorn.run(
        application,
        host=settings.application_host,
        port=settings.application_port,
        log_config=None,
        proxy_headers=True,
        forwarded_allow_ips=settings.forwarded_allow_ips,
    )


if __name__ == "__main__":
    main()
