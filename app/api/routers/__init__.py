"""API router package for endpoint composition."""

from .controllers import api_convert_action_result, api_create_controller_router
from .health import HEALTH_PATH, api_create_health_router

__all__ = ["HEALTH_PATH", "api_convert_action_result", "api_create_controller_router", "api_create_health_router"]
