"""Controller base class, action discovery and the controller registry."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from fastapi.encoders import jsonable_encoder
from fastapi.templating import Jinja2Templates
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from app.domain import RouteValues

_ActionCallable = TypeVar("_ActionCallable", bound=Callable[..., Any])

_POLICIES_ATTRIBUTE = "__authorization_policies__"
_CONTROLLER_SUFFIX = "Controller"


def authorize(*policies: str) -> Callable[[_ActionCallable], _ActionCallable]:
    """Require every named authorization policy for a controller action.

    Args:
        *policies: Policy names registered with the authorization policy registry.

    Returns:
        Callable: Decorator attaching the policy names to the action.

    Raises:
        ValueError: Raised when no policy or a blank policy name is supplied.
    """

    normalized_policies = tuple(policy.strip() for policy in policies)
    if not normalized_policies or not all(normalized_policies):
        raise ValueError("authorize requires at least one non-blank policy name")

    def _decorate(action: _ActionCallable) -> _ActionCallable:
        existing_policies = getattr(action, _POLICIES_ATTRIBUTE, ())
        setattr(action, _POLICIES_ATTRIBUTE, tuple(existing_policies) + normalized_policies)
        return action

    return _decorate


class Controller:
    """Base class for MVC controllers.

    A new instance is created per request. Public methods declared on a
    subclass are actions; an action receives `id` when its signature has an
    `id` parameter.
    """

    def __init__(self, request: Request, templates: Jinja2Templates, route_values: RouteValues):
        self.request = request
        self.templates = templates
        self.route_values = route_values

    @classmethod
    def controller_name(cls) -> str:
        """Return the routing name, which is the class name without the `Controller` suffix."""

        class_name = cls.__name__
        if class_name.endswith(_CONTROLLER_SUFFIX) and class_name != _CONTROLLER_SUFFIX:
            return class_name[: -len(_CONTROLLER_SUFFIX)]
        return class_name

    def view(
        self,
        model: Any = None,
        template_name: str | None = None,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
        **context: Any,
    ) -> Response:
        """Render a view template.

        Without an explicit name, `{controller}/{action}.html` is tried first
        and `shared/{action}.html` second.

        Args:
            model: Object exposed to the template as `model`.
            template_name: Explicit template path relative to the templates root.
            status_code: HTTP status code.
            headers: Extra response headers.
            **context: Additional template variables.

        Returns:
            Response: Rendered HTML response.

        Raises:
            jinja2.TemplatesNotFound: Raised when no candidate template exists.
        """

        if template_name is None:
            controller_folder = self.controller_name().lower()
            action_file = self.route_values.action.lower()
            template_name = self.templates.env.select_template(
                [f"{controller_folder}/{action_file}.html", f"shared/{action_file}.html"]
            ).name
        template_context = {
            "model": model,
            "route_values": self.route_values,
            "request_id": getattr(self.request.state, "request_id", None),
            **context,
        }
        return self.templates.TemplateResponse(
            self.request,
            template_name,
            template_context,
            status_code=status_code,
            headers=headers,
        )

    def content(self, text: str, media_type: str = "text/plain", status_code: int = 200) -> Response:
        if media_type == "text/plain":
            return PlainTextResponse(text, status_code=status_code)
        return Response(content=text, media_type=media_type, status_code=status_code)

    def json(self, data: Any, status_code: int = 200) -> Response:
        return JSONResponse(content=jsonable_encoder(data), status_code=status_code)

    def redirect_to_action(self, action: str, controller: str | None = None, id: str | None = None) -> Response:
        """Redirect to another action using the conventional `/{controller}/{action}/{id}` shape."""

        target_controller = controller or self.controller_name()
        target_path = f"/{target_controller}/{action}"
        if id is not None:
            target_path = f"{target_path}/{id}"
        return RedirectResponse(target_path, status_code=302)


@dataclass(frozen=True)
class ActionDescriptor:
    """Discovered controller action.

    Attributes:
        controller_name: Routing name of the controller.
        action_name: Display name of the action.
        controller_type: Controller class instantiated per request.
        method_name: Python method implementing the action.
        accepts_id: Whether the method takes an `id` argument.
        is_coroutine: Whether the method must be awaited.
        policies: Required authorization policy names.
    """

    controller_name: str
    action_name: str
    controller_type: type[Controller]
    method_name: str
    accepts_id: bool
    is_coroutine: bool
    policies: tuple[str, ...]


def controller_normalize_name(name: str) -> str:
    """Normalize controller or action names for case- and underscore-insensitive lookup."""

    return name.replace("_", "").replace("-", "").lower()


def controller_discover_actions(controller_type: type[Controller]) -> dict[str, ActionDescriptor]:
    """Discover public action methods declared on a controller class.

    Args:
        controller_type: Controller subclass.

    Returns:
        dict[str, ActionDescriptor]: Actions keyed by normalized action name.

    Raises:
        ValueError: Raised when two methods normalize to the same action name.
    """

    controller_name = controller_type.controller_name()
    class_policies = tuple(getattr(controller_type, _POLICIES_ATTRIBUTE, ()))
    actions: dict[str, ActionDescriptor] = {}
    for method_name, method in inspect.getmembers(controller_type, predicate=inspect.isfunction):
        if method_name.startswith("_") or hasattr(Controller, method_name):
            continue
        normalized_name = controller_normalize_name(method_name)
        if normalized_name in actions:
            raise ValueError(f"duplicate action `{method_name}` on controller {controller_type.__name__}")
        actions[normalized_name] = ActionDescriptor(
            controller_name=controller_name,
            action_name="".join(part[:1].upper() + part[1:] for part in method_name.split("_")),
            controller_type=controller_type,
            method_name=method_name,
            accepts_id="id" in inspect.signature(method).parameters,
            is_coroutine=inspect.iscoroutinefunction(method),
            policies=class_policies + tuple(getattr(method, _POLICIES_ATTRIBUTE, ())),
        )
    return actions


class ControllerRegistry:
    """Registry of controllers addressable by the conventional route."""

    def __init__(self) -> None:
        self._controllers: dict[str, dict[str, ActionDescriptor]] = {}

    def controller_register(self, controller_type: type[Controller]) -> "ControllerRegistry":
        """Register one controller class and discover its actions.

        Args:
            controller_type: Controller subclass.

        Returns:
            ControllerRegistry: The registry itself, for chained registration.

        Raises:
            ValueError: Raised for non-controller types or duplicate controller names.
        """

        if not (inspect.isclass(controller_type) and issubclass(controller_type, Controller)):
            raise ValueError("controller_type must be a Controller subclass")
        normalized_name = controller_normalize_name(controller_type.controller_name())
        if normalized_name in self._controllers:
            raise ValueError(f"controller already registered: {controller_type.controller_name()}")

        self._controllers[normalized_name] = controller_discover_actions(controller_type)
        return self

    def controller_names(self) -> tuple[str, ...]:
        return tuple(
            next(iter(actions.values())).controller_name
            for actions in self._controllers.values()
            if actions
        )

    def controller_actions(self) -> tuple[ActionDescriptor, ...]:
        """Return every registered action descriptor."""

        return tuple(action for actions in self._controllers.values() for action in actions.values())

    def controller_resolve(self, route_values: RouteValues) -> ActionDescriptor | None:
        """Find the action addressed by route values.

        Args:
            route_values: Controller and action names from the route.

        Returns:
            ActionDescriptor | None: Matching action, or None when unknown.
        """

        actions = self._controllers.get(controller_normalize_name(route_values.controller))
        if actions is None:
            return None
        return actions.get(controller_normalize_name(route_values.action))
