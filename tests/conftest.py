"""Shared pytest fixtures for logging and environment isolation."""

from __future__ import annotations

import logging
from typing import Iterator

import pytest
import structlog

_ISOLATED_ENVIRONMENT_VARIABLES = (
    "APP_ENVIRONMENT",
    "ENVIRONMENT_NAME",
    "APPLICATIONINSIGHTS_CONNECTION_STRING",
    "CONNECTION_STRINGS__APPLICATION_INSIGHTS",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_LEVEL_OVERRIDES",
)


@pytest.fixture(autouse=True)
def _isolate_host_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Remove host configuration variables and restore logging state after each test.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        Iterator[None]: Fixture generator.

    Raises:
        RuntimeError: This fixture does not raise runtime errors.
    """

    for variable_name in _ISOLATED_ENVIRONMENT_VARIABLES:
        monkeypatch.delenv(variable_name, raising=False)

    root_logger = logging.getLogger()
    original_handlers = list(root_logger.handlers)
    original_level = root_logger.level
    yield

    for handler in list(root_logger.handlers):
        if handler not in original_handlers:
            root_logger.removeHandler(handler)
    root_logger.setLevel(original_level)
    for logger_name in ("uvicorn", "uvicorn.error", "starlette", "fastapi", "app.hosting.lifetime"):
        logging.getLogger(logger_name).setLevel(logging.NOTSET)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
