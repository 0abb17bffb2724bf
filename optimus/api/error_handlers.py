"""Error Handlers: error-capture and error-responder stages of the pipeline.

Invariants:
    - Every per-request error is logged before it becomes a response
    - OptimusError → its own status and message as text/plain
    - Starlette HTTPException → 404 for routing misses, otherwise its status
    - Uncaught faults are handled by FaultBarrierMiddleware through the same
      capture_error/error_response pair, so there is one response shape
    - Building an error response never raises

Design Decisions:
    - Plain-text bodies over a JSON envelope: clients of PUT / read the engine message as-is
    - Tracebacks only for 5xx: client mistakes do not flood the log with stack traces
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from optimus.core.errors import (
    ErrorCategory, ErrorSeverity, NotFoundError, OptimusError,
)

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all error handlers on the FastAPI app."""
    _register_optimus_error_handler(app)
    _register_http_exception_handler(app)


def capture_error(
    method: str, path: str, error: OptimusError, cause: BaseException | None = None,
) -> None:
    """Log a per-request error with its full structured detail."""
    error.context.method = error.context.method or method
    error.context.path = error.context.path or path
    exc_info = None
    if not error.is_client_error:
        exc_info = cause or error
    logger.error(
        f"{error.code}: {error.message}",
        extra=error.to_log_extra(),
        exc_info=exc_info,
    )


def error_response(error: OptimusError) -> PlainTextResponse:
    """Status from the error, message as the body."""
    return PlainTextResponse(error.message, status_code=error.http_status)


def _register_optimus_error_handler(app: FastAPI) -> None:

    @app.exception_handler(OptimusError)
    async def optimus_error_handler(request: Request, exc: OptimusError):
        """Handle all optimus pipeline errors."""
        capture_error(request.method, request.url.path, exc, exc.__cause__)
        return error_response(exc)


def _register_http_exception_handler(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException,
    ):
        """Map framework-raised HTTP errors onto the optimus error shape."""
        error = _from_http_exception(exc)
        capture_error(request.method, request.url.path, error, exc)
        return error_response(error)


def _from_http_exception(exc: StarletteHTTPException) -> OptimusError:
    # methods outside the catch-all route's list surface as 405
    if exc.status_code in (404, 405):
        return NotFoundError()
    return OptimusError(
        str(exc.detail), "HTTP_ERROR",
        ErrorCategory.VALIDATION if exc.status_code < 500 else ErrorCategory.INTERNAL,
        ErrorSeverity.WARNING if exc.status_code < 500 else ErrorSeverity.ERROR,
        http_status=exc.status_code,
    )
