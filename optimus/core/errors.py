"""Error Hierarchy: typed, categorized exceptions for every optimus failure mode.

Invariants:
    - Every error has a message, code, category, severity and HTTP status
    - Client errors (4xx) are WARNING severity; they are never reported as fatal
    - The user-facing message never carries a traceback or internal state
    - CriticalError is only raised during startup

Design Decisions:
    - Single hierarchy with OptimusError base: one FastAPI handler turns every pipeline error into a response
    - ErrorContext as dataclass: structured log fields without coupling errors to the logging setup
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

DEFAULT_HTTP_STATUS = 500


class ErrorSeverity(str, Enum):
    """Error severity for observability."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    EXTERNAL = "external"
    INTERNAL = "internal"
    STARTUP = "startup"


@dataclass
class ErrorContext:
    """Structured context attached to an error for logging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    method: str | None = None
    path: str | None = None
    port: int | None = None
    debug_info: dict[str, Any] | None = None


class OptimusError(Exception):
    """Base exception for all optimus errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = DEFAULT_HTTP_STATUS,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.http_status < 500

    def to_log_extra(self) -> dict:
        """Structured fields for a log record's ``extra``."""
        extra = {
            "error_code": self.code,
            "error_category": self.category.value,
            "status": self.http_status,
        }
        if self.context.method:
            extra["method"] = self.context.method
        if self.context.path:
            extra["path"] = self.context.path
        if self.context.port is not None:
            extra["port"] = self.context.port
        if self.context.debug_info:
            extra["debug_info"] = self.context.debug_info
        return extra


# ─── Client Errors (400-level) ──────────────────────────────────

class BadRequestError(OptimusError):
    """Request body could not be parsed or has the wrong shape."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "BAD_REQUEST", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )


class PayloadTooLargeError(OptimusError):
    """Request body exceeds the configured limit."""
    def __init__(self, limit: int, context: ErrorContext | None = None):
        super().__init__(
            f"Request body exceeds the {limit} byte limit",
            "PAYLOAD_TOO_LARGE", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 413,
        )
        self.limit = limit


class NotFoundError(OptimusError):
    """No route matched the request."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Not Found", "NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.WARNING, context, 404,
        )


# ─── Server Errors (500-level) ──────────────────────────────────

class TransformFailedError(OptimusError):
    """The rule engine signalled a failure; message and status are relayed."""
    def __init__(
        self,
        message: str,
        http_status: int | None = None,
        context: ErrorContext | None = None,
    ):
        # only error statuses are relayed
        if http_status is None or not 400 <= http_status <= 599:
            status = DEFAULT_HTTP_STATUS
        else:
            status = http_status
        super().__init__(
            message, "TRANSFORM_FAILED", ErrorCategory.EXTERNAL,
            ErrorSeverity.WARNING if status < 500 else ErrorSeverity.ERROR,
            context, status,
        )


class InternalError(OptimusError):
    """Uncaught fault inside a pipeline stage."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Internal Server Error", "INTERNAL_ERROR", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, context, 500,
        )


class CriticalError(OptimusError):
    """Unrecoverable startup failure; the process is expected to exit."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CRITICAL_ERROR", ErrorCategory.STARTUP,
            ErrorSeverity.CRITICAL, context, 500,
        )
