"""Pipeline Stages: ASGI middleware wrapping the router, outermost first.

Invariants:
    - HealthCheckMiddleware answers /health before any other stage runs
    - MetricsMiddleware and AccessLogMiddleware observe exactly one status per request
    - FaultBarrierMiddleware turns uncaught faults into a 500 response, so the
      stages around it always see a completed response
    - Non-HTTP scopes (lifespan, websocket) pass straight through
    - The route label is a matched template or "unmatched", never a raw path

Design Decisions:
    - Pure ASGI classes over BaseHTTPMiddleware: status is read off http.response.start, bodies are never buffered
    - Fault barrier innermost: metrics and the access log record the 500 it produces
"""

import logging
import time

from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from optimus.api.error_handlers import capture_error, error_response
from optimus.api.routes.not_found import CATCH_ALL_ROUTE_NAME
from optimus.core.errors import ErrorContext, InternalError
from optimus.infrastructure.observability import RequestMetrics

access_logger = logging.getLogger("optimus.access")

HEALTH_PATH = "/health"
UNMATCHED_ROUTE = "unmatched"


class HealthCheckMiddleware:
    """Stage 1: 200 with an empty body for the health path, any method."""

    def __init__(self, app: ASGIApp, *, path: str = HEALTH_PATH) -> None:
        self.app = app
        self.path = path.rstrip("/")

    def matches(self, path: str) -> bool:
        return path == self.path or path.startswith(self.path + "/")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.matches(scope["path"]):
            await Response(status_code=200)(scope, receive, send)
            return
        await self.app(scope, receive, send)


class MetricsMiddleware:
    """Stage 2: request count and latency per method, route and status."""

    def __init__(self, app: ASGIApp, *, metrics: RequestMetrics) -> None:
        self.app = app
        self.metrics = metrics

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started_at = time.perf_counter()
        status_code = 500

        async def send_wrapped(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapped)
        finally:
            self.metrics.observe(
                scope["method"],
                _route_template(scope),
                status_code,
                time.perf_counter() - started_at,
            )


class AccessLogMiddleware:
    """Stage 3: one structured log line per request/response pair."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started_at = time.perf_counter()
        status_code = 500

        async def send_wrapped(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapped)
        finally:
            duration_ms = round((time.perf_counter() - started_at) * 1000, 3)
            access_logger.info(
                "%s %s %s", scope["method"], scope["path"], status_code,
                extra={
                    "method": scope["method"],
                    "path": scope["path"],
                    "status": status_code,
                    "duration_ms": duration_ms,
                },
            )


class FaultBarrierMiddleware:
    """Stages 6-7 for uncaught faults: log at error severity, answer 500."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapped(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapped)
        except Exception as exc:
            error = InternalError(
                ErrorContext(method=scope["method"], path=scope["path"]),
            )
            capture_error(scope["method"], scope["path"], error, exc)
            if response_started:
                # a partial response cannot be replaced; let the server drop it
                raise
            await error_response(error)(scope, receive, send)


def _route_template(scope: Scope) -> str:
    route = scope.get("route")
    if route is None or getattr(route, "name", None) == CATCH_ALL_ROUTE_NAME:
        return UNMATCHED_ROUTE
    return getattr(route, "path", None) or UNMATCHED_ROUTE
