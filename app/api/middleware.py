"""HTTP middleware forming the ordered request pipeline.

Each class wraps the next ASGI application. `create_api_application`
assembles them in a fixed order; see `api_build_middleware`.
"""

from __future__ import annotations

import re
import time
import uuid
from datetime import datetime, timezone
from typing import Callable

import structlog
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, RedirectResponse, Response
from starlette.staticfiles import StaticFiles
from starlette.types import ASGIApp, Receive, Scope, Send

from app.telemetry import TelemetryChannelPort, telemetry_build_request_envelope

from .authorization import AuthorizationPolicyRegistry
from .routing import EndpointMatch

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "Request-Id"
_TRACEPARENT_PATTERN = re.compile(r"^[0-9a-f]{2}-([0-9a-f]{32})-[0-9a-f]{16}-[0-9a-f]{2}$")


class RequestTelemetryMiddleware(BaseHTTPMiddleware):
    """Assign a request id, bind it into the logging context and record request telemetry."""

    def __init__(self, app: ASGIApp, telemetry_channel: TelemetryChannelPort):
        super().__init__(app)
        self._telemetry_channel = telemetry_channel

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = middleware_resolve_request_id(request.headers.get(REQUEST_ID_HEADER), request.headers.get("traceparent"))
        operation_name = f"{request.method} {request.url.path}"
        request.state.request_id = request_id

        started_at = time.perf_counter()
        started_at_utc = datetime.now(timezone.utc)
        status_code = 500
        with structlog.contextvars.bound_contextvars(request_id=request_id, operation_name=operation_name):
            try:
                response = await call_next(request)
                status_code = response.status_code
                response.headers[REQUEST_ID_HEADER] = request_id
                return response
            finally:
                self._middleware_track_request(
                    request=request,
                    request_id=request_id,
                    operation_name=operation_name,
                    status_code=status_code,
                    started_at_utc=started_at_utc,
                    duration_seconds=time.perf_counter() - started_at,
                )

    def _middleware_track_request(
        self,
        request: Request,
        request_id: str,
        operation_name: str,
        status_code: int,
        started_at_utc: datetime,
        duration_seconds: float,
    ) -> None:
        instrumentation_key = self._telemetry_channel.instrumentation_key
        if not self._telemetry_channel.telemetry_enabled or instrumentation_key is None:
            return

        endpoint_match = getattr(request.state, "endpoint", None)
        self._telemetry_channel.telemetry_enqueue(
            telemetry_build_request_envelope(
                instrumentation_key=instrumentation_key,
                request_id=request_id,
                name=operation_name,
                url=str(request.url),
                duration_seconds=duration_seconds,
                response_code=status_code,
                success=status_code < 400,
                properties={"endpoint": endpoint_match.endpoint_name if endpoint_match else None},
                tags={"ai.operation.id": request_id, "ai.operation.name": operation_name},
                timestamp=started_at_utc,
            )
        )


def middleware_resolve_request_id(request_id_header: str | None, traceparent_header: str | None) -> str:
    """Pick the correlation id from incoming headers or generate a new one.

    Args:
        request_id_header: Value of the `Request-Id` header.
        traceparent_header: Value of the W3C `traceparent` header.

    Returns:
        str: Trace id from `traceparent`, else the `Request-Id` value, else a new hex id.
    """

    if traceparent_header:
        traceparent_match = _TRACEPARENT_PATTERN.match(traceparent_header.strip().lower())
        if traceparent_match and traceparent_match.group(1) != "0" * 32:
            return traceparent_match.group(1)
    if request_id_header and request_id_header.strip():
        return request_id_header.strip()[:128]
    return uuid.uuid4().hex


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Convert unhandled request exceptions into a redirect to the error page."""

    def __init__(self, app: ASGIApp, error_path: str):
        super().__init__(app)
        self._error_path = error_path

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception:
            if request.url.path.rstrip("/").lower() == self._error_path.rstrip("/").lower():
                raise
            logger.exception("unhandled_request_exception", method=request.method, path=request.url.path)
            return RedirectResponse(self._error_path, status_code=302)


class HstsMiddleware(BaseHTTPMiddleware):
    """Add the `Strict-Transport-Security` header to HTTPS responses."""

    def __init__(
        self,
        app: ASGIApp,
        max_age_seconds: int = 30 * 24 * 60 * 60,
        include_subdomains: bool = False,
        preload: bool = False,
        excluded_hosts: list[str] | None = None,
    ):
        super().__init__(app)
        self._header_value = middleware_build_hsts_header(
            max_age_seconds=max_age_seconds,
            include_subdomains=include_subdomains,
            preload=preload,
        )
        self._excluded_hosts = {_middleware_normalize_host(host) for host in (excluded_hosts or [])}

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        if request.url.scheme == "https" and _middleware_normalize_host(request.url.hostname or "") not in self._excluded_hosts:
            response.headers["Strict-Transport-Security"] = self._header_value
        return response


def middleware_build_hsts_header(max_age_seconds: int, include_subdomains: bool = False, preload: bool = False) -> str:
    """Render the HSTS header value.

    Raises:
        ValueError: Raised when max_age_seconds is negative.
    """

    if max_age_seconds < 0:
        raise ValueError("max_age_seconds must be >= 0")
    directives = [f"max-age={max_age_seconds}"]
    if include_subdomains:
        directives.append("includeSubDomains")
    if preload:
        directives.append("preload")
    return "; ".join(directives)


def _middleware_normalize_host(host: str) -> str:
    return host.strip().strip("[]").lower()


class StaticFilesMiddleware:
    """Serve existing files for GET and HEAD requests; pass everything else through."""

    def __init__(self, app: ASGIApp, directory: str):
        self.app = app
        self._static_files = StaticFiles(directory=directory, check_dir=False)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] not in ("GET", "HEAD"):
            await self.app(scope, receive, send)
            return

        path = self._static_files.get_path(scope)
        try:
            response = await self._static_files.get_response(path, scope)
        except HTTPException as error:
            if error.status_code != 404:
                raise
            await self.app(scope, receive, send)
            return
        await response(scope, receive, send)


class RoutingMiddleware(BaseHTTPMiddleware):
    """Resolve the endpoint for a request and expose it as `request.state.endpoint`."""

    def __init__(self, app: ASGIApp, resolver: Callable[[str], EndpointMatch | None]):
        super().__init__(app)
        self._resolver = resolver

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        endpoint_match = self._resolver(request.url.path)
        request.state.endpoint = endpoint_match
        endpoint_name = endpoint_match.endpoint_name if endpoint_match is not None else None
        with structlog.contextvars.bound_contextvars(endpoint=endpoint_name):
            return await call_next(request)


class AuthorizationMiddleware(BaseHTTPMiddleware):
    """Enforce the authorization policies required by the resolved endpoint."""

    def __init__(self, app: ASGIApp, policy_registry: AuthorizationPolicyRegistry):
        super().__init__(app)
        self._policy_registry = policy_registry

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        endpoint_match: EndpointMatch | None = getattr(request.state, "endpoint", None)
        if endpoint_match is not None and endpoint_match.policies:
            allowed = await self._policy_registry.authorization_evaluate(endpoint_match.policies, request)
            if not allowed:
                logger.info(
                    "authorization_denied",
                    endpoint=endpoint_match.endpoint_name,
                    policies=list(endpoint_match.policies),
                )
                return PlainTextResponse("Forbidden", status_code=403)
        return await call_next(request)
