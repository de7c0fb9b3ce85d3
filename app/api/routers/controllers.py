"""Conventional controller route dispatching to MVC controller actions."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool
from starlette.responses import JSONResponse, PlainTextResponse, Response

from app.api.routing import EndpointMatch


def api_create_controller_router(templates: Jinja2Templates, methods: tuple[str, ...] = ("GET", "POST")) -> APIRouter:
    """Create catch-all router dispatching to the action chosen by the routing middleware.

    Args:
        templates: Jinja2 templates used by controller views.
        methods: HTTP methods accepted by the conventional route.

    Returns:
        APIRouter: Router exposing the conventional controller route.

    Raises:
        ValueError: Raised when templates are invalid.
    """

    if templates is None:
        raise ValueError("templates must not be None")

    router = APIRouter(tags=["controllers"])

    @router.api_route("/{path:path}", methods=list(methods), include_in_schema=False)
    async def api_controller_dispatch(request: Request, path: str) -> Response:
        """Instantiate the resolved controller and invoke its action.

        Returns:
            Response: Action result converted into an HTTP response.

        Raises:
            HTTPException: Raised with 404 when no controller action matches the path,
                or 405 when the path belongs to a fixed endpoint that rejects the method.
        """

        _ = path
        endpoint_match: EndpointMatch | None = getattr(request.state, "endpoint", None)
        if endpoint_match is not None and endpoint_match.action is None:
            raise HTTPException(status_code=status.HTTP_405_METHOD_NOT_ALLOWED)
        if endpoint_match is None or endpoint_match.action is None or endpoint_match.route_values is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

        action = endpoint_match.action
        controller = action.controller_type(
            request=request,
            templates=templates,
            route_values=endpoint_match.route_values,
        )
        action_method = getattr(controller, action.method_name)
        action_arguments = {"id": endpoint_match.route_values.id} if action.accepts_id else {}
        if action.is_coroutine:
            result = await action_method(**action_arguments)
        else:
            result = await run_in_threadpool(action_method, **action_arguments)
        return api_convert_action_result(result)

    return router


def api_convert_action_result(result: object) -> Response:
    """Convert an action return value into a response.

    Responses pass through, strings become plain text, None becomes 204 and
    anything else is JSON-encoded.
    """

    if isinstance(result, Response):
        return result
    if result is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    if isinstance(result, str):
        return PlainTextResponse(result)
    return JSONResponse(content=jsonable_encoder(result))
