"""Built-in controller set registered by the host bootstrap."""

from .base import ControllerRegistry
from .home import HomeController


def controller_create_default_registry() -> ControllerRegistry:
    """Create a registry containing the application's built-in controllers.

    Returns:
        ControllerRegistry: Registry with `HomeController` registered.

    Raises:
        ValueError: Raised when controller discovery fails.
    """

    return ControllerRegistry().controller_register(HomeController)
