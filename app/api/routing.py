"""Route template parsing and endpoint resolution for conventional routes.

Templates use the `{controller=Home}/{action=Index}/{id?}` notation: literal
segments, parameters with a default value, and optional parameters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from app.domain import RouteValues

from .controllers import ActionDescriptor, ControllerRegistry

_PARAMETER_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class RouteSegment:
    """One parsed template segment.

    Attributes:
        text: Literal text, or the parameter name for parameter segments.
        is_parameter: Whether the segment captures a value.
        default: Default value used when the segment is absent.
        optional: Whether the segment may be absent without a default.
    """

    text: str
    is_parameter: bool = False
    default: str | None = None
    optional: bool = False

    @property
    def omittable(self) -> bool:
        return self.is_parameter and (self.optional or self.default is not None)


class RoutePattern:
    """Parsed route template able to match request paths."""

    def __init__(self, template: str):
        """Parse a route template.

        Args:
            template: Template such as `{controller=Home}/{action=Index}/{id?}`.

        Raises:
            ValueError: Raised when the template is malformed.
        """

        self._template = template
        self._segments = routing_parse_template(template)

    @property
    def template(self) -> str:
        return self._template

    @property
    def segments(self) -> tuple[RouteSegment, ...]:
        return self._segments

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return tuple(segment.text for segment in self._segments if segment.is_parameter)

    def route_match(self, path: str) -> dict[str, str] | None:
        """Match a request path against the template.

        Literal segments compare case-insensitively. Missing trailing
        segments take their defaults; optional ones are left out.

        Args:
            path: Request path such as `/Products/Details/42`.

        Returns:
            dict[str, str] | None: Captured route values, or None when the path does not match.
        """

        stripped_path = path.strip("/")
        path_segments = stripped_path.split("/") if stripped_path else []
        if len(path_segments) > len(self._segments):
            return None

        route_values: dict[str, str] = {}
        for index, segment in enumerate(self._segments):
            if index < len(path_segments):
                value = path_segments[index]
                if not value:
                    return None
                if not segment.is_parameter:
                    if value.lower() != segment.text.lower():
                        return None
                    continue
                route_values[segment.text] = value
                continue

            if not segment.is_parameter:
                return None
            if segment.default is not None:
                route_values[segment.text] = segment.default
            elif not segment.optional:
                return None

        return route_values

    def __repr__(self) -> str:
        return f"RoutePattern({self._template!r})"


def routing_parse_template(template: str) -> tuple[RouteSegment, ...]:
    """Parse a route template into segments.

    Args:
        template: Route template text.

    Returns:
        tuple[RouteSegment, ...]: Parsed segments in path order.

    Raises:
        ValueError: Raised for empty segments, bad parameter syntax, duplicate
            names, or a required segment following an omittable one.
    """

    stripped_template = template.strip().strip("/")
    if not stripped_template:
        return ()

    segments: list[RouteSegment] = []
    seen_names: set[str] = set()
    for raw_segment in stripped_template.split("/"):
        segment = _routing_parse_segment(raw_segment, template=template)
        if segment.is_parameter:
            normalized_name = segment.text.lower()
            if normalized_name in seen_names:
                raise ValueError(f"duplicate route parameter `{segment.text}` in template {template!r}")
            seen_names.add(normalized_name)
        if segments and segments[-1].omittable and not segment.omittable:
            raise ValueError(f"required segment `{raw_segment}` follows an omittable segment in {template!r}")
        segments.append(segment)
    return tuple(segments)


def _routing_parse_segment(raw_segment: str, template: str) -> RouteSegment:
    if not raw_segment:
        raise ValueError(f"empty segment in route template {template!r}")

    if not (raw_segment.startswith("{") and raw_segment.endswith("}")):
        if "{" in raw_segment or "}" in raw_segment:
            raise ValueError(f"unsupported complex segment `{raw_segment}` in {template!r}")
        return RouteSegment(text=raw_segment)

    body = raw_segment[1:-1].strip()
    name, separator, default = body.partition("=")
    optional = False
    if not separator and name.endswith("?"):
        name = name[:-1]
        optional = True
    name = name.strip()
    if not _PARAMETER_NAME_PATTERN.match(name):
        raise ValueError(f"invalid route parameter `{raw_segment}` in {template!r}")
    if separator and not default.strip():
        raise ValueError(f"route parameter `{name}` has an empty default in {template!r}")

    return RouteSegment(
        text=name,
        is_parameter=True,
        default=default.strip() if separator else None,
        optional=optional,
    )


@dataclass(frozen=True)
class EndpointMatch:
    """Endpoint selected for one request by the routing middleware.

    Attributes:
        endpoint_name: Display name, for example `health` or `Home.Index`.
        route_values: Controller route values, None for fixed endpoints.
        action: Resolved controller action, None for fixed endpoints.
        policies: Authorization policies required by the endpoint.
    """

    endpoint_name: str
    route_values: RouteValues | None = None
    action: ActionDescriptor | None = None
    policies: tuple[str, ...] = field(default_factory=tuple)


class ControllerRouteTable:
    """Resolve request paths to fixed endpoints or controller actions."""

    def __init__(
        self,
        pattern: RoutePattern,
        controller_registry: ControllerRegistry,
        fixed_endpoints: dict[str, str] | None = None,
    ):
        """Initialize route table.

        Args:
            pattern: Conventional controller route pattern.
            controller_registry: Registered controllers.
            fixed_endpoints: Exact, case-sensitive paths mapped to endpoint names; they take precedence.

        Raises:
            ValueError: Raised when the pattern lacks `controller` or `action` parameters.
        """

        parameter_names = {name.lower() for name in pattern.parameter_names}
        if not {"controller", "action"} <= parameter_names:
            raise ValueError("controller route template must define `controller` and `action` parameters")
        self._pattern = pattern
        self._controller_registry = controller_registry
        self._fixed_endpoints = dict(fixed_endpoints or {})

    @property
    def pattern(self) -> RoutePattern:
        return self._pattern

    def routing_resolve(self, path: str) -> EndpointMatch | None:
        """Resolve one request path.

        Args:
            path: Request path.

        Returns:
            EndpointMatch | None: Matched endpoint, or None when nothing handles the path.
        """

        fixed_endpoint_name = self._fixed_endpoints.get(path)
        if fixed_endpoint_name is not None:
            return EndpointMatch(endpoint_name=fixed_endpoint_name)

        captured_values = self._pattern.route_match(path)
        if captured_values is None:
            return None

        lowered_values = {name.lower(): value for name, value in captured_values.items()}
        route_values = RouteValues(
            controller=lowered_values.pop("controller"),
            action=lowered_values.pop("action"),
            id=lowered_values.pop("id", None),
            extra=lowered_values,
        )
        action = self._controller_registry.controller_resolve(route_values)
        if action is None:
            return None

        return EndpointMatch(
            endpoint_name=f"{action.controller_name}.{action.action_name}",
            route_values=route_values,
            action=action,
            policies=action.policies,
        )
