"""MVC controller package for conventional route dispatch."""

from .base import (
    ActionDescriptor,
    Controller,
    ControllerRegistry,
    authorize,
    controller_discover_actions,
    controller_normalize_name,
)
from .defaults import controller_create_default_registry
from .home import HomeController

__all__ = [
    "ActionDescriptor",
    "Controller",
    "ControllerRegistry",
    "HomeController",
    "authorize",
    "controller_create_default_registry",
    "controller_discover_actions",
    "controller_normalize_name",
]
