"""API layer package for FastAPI application and route composition."""

from .application import DEFAULT_ROUTE_TEMPLATE, api_build_middleware, create_api_application

__all__ = ["DEFAULT_ROUTE_TEMPLATE", "api_build_middleware", "create_api_application"]
