"""Observability: structured logging setup and per-pipeline request metrics.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (method, path, status, error_code, ...) surfaced when present
    - JSON format in production, human-readable in development
    - Each RequestMetrics owns its own CollectorRegistry, so pipelines built
      side by side never collide on metric names

Design Decisions:
    - prometheus_client over push-based statsd: the exporter is pull-only and needs no agent next to the process
    - Whitelisted extra keys in JSONFormatter: arbitrary LogRecord attributes never leak into the log line
"""

import json
import logging
from datetime import datetime, timezone

from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server

LOG_TYPE = "http"

_EXTRA_KEYS = (
    "method", "path", "status", "duration_ms", "port", "host",
    "error_code", "error_category", "rule_engine", "debug_info",
)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_KEYS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure root logging once for the process."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    logging.root.handlers = [handler]
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))


class RequestMetrics:
    """Request count and latency collectors for one pipeline instance."""

    LABELS = ("service", "log_type", "env", "method", "route", "status_code")

    def __init__(
        self,
        service: str,
        environment: str,
        registry: CollectorRegistry | None = None,
    ):
        self.service = service
        self.environment = environment
        self.registry = registry or CollectorRegistry()
        self.requests = Counter(
            "optimus_http_requests_total",
            "Total HTTP requests",
            self.LABELS,
            registry=self.registry,
        )
        self.latency = Histogram(
            "optimus_http_request_duration_seconds",
            "HTTP request latency in seconds",
            self.LABELS,
            registry=self.registry,
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

    def observe(self, method: str, route: str, status_code: int, seconds: float) -> None:
        labels = {
            "service": self.service,
            "log_type": LOG_TYPE,
            "env": self.environment,
            "method": method,
            "route": route,
            "status_code": str(status_code),
        }
        self.requests.labels(**labels).inc()
        self.latency.labels(**labels).observe(seconds)


def start_metrics_exporter(metrics: RequestMetrics, port: int) -> None:
    """Serve ``metrics.registry`` on its own port, off the public surface."""
    start_http_server(port, registry=metrics.registry)
    logging.getLogger(__name__).info(
        "Metrics exporter listening", extra={"port": port},
    )
