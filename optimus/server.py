"""Server Lifecycle: builds the request pipeline and owns the listening socket.

Invariants:
    - get_instance() only constructs; every call yields an independent app
    - start() binds the socket itself, so a bind failure is seen before uvicorn runs
    - State moves UNINITIALIZED → LISTENING or UNINITIALIZED → FAILED, once
    - Any startup failure is logged at CRITICAL and re-raised as CriticalError
    - A failed start leaves nothing serving: uvicorn is stopped if it already started
    - No retry; restarting is the process supervisor's job

Design Decisions:
    - Socket bound here, not by uvicorn: uvicorn exits the process on bind errors instead of raising
    - Pipeline built per get_instance() call, no module-level app: tests build isolated apps side by side
"""

import asyncio
import logging
import socket
from dataclasses import dataclass
from enum import Enum

import uvicorn
from fastapi import FastAPI
from starlette.middleware import Middleware

from optimus import SERVICE_NAME
from optimus.api.error_handlers import register_error_handlers
from optimus.api.middleware import (
    HEALTH_PATH,
    AccessLogMiddleware,
    FaultBarrierMiddleware,
    HealthCheckMiddleware,
    MetricsMiddleware,
)
from optimus.api.routes import not_found, transform, version
from optimus.config import Settings
from optimus.core.errors import CriticalError, ErrorContext
from optimus.infrastructure.observability import RequestMetrics, start_metrics_exporter
from optimus.services.rule_engine import RuleEngine, load_rule_engine

logger = logging.getLogger(__name__)

STARTUP_POLL_SECONDS = 0.01


class ServerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LISTENING = "listening"
    FAILED = "failed"


@dataclass
class ServerHandle:
    """A running listener."""
    server: uvicorn.Server
    task: asyncio.Task
    host: str
    port: int

    async def wait(self) -> None:
        """Block until the server stops serving."""
        await self.task

    async def stop(self) -> None:
        """Ask uvicorn for a graceful shutdown and wait for it."""
        self.server.should_exit = True
        await self.task


class OptimusServer:
    """The optimus application: pipeline construction plus startup."""

    def __init__(self, settings: Settings, rule_engine: RuleEngine | None = None):
        self.settings = settings
        self.rule_engine = rule_engine or load_rule_engine(settings.rule_engine)
        self.state = ServerState.UNINITIALIZED

    def get_instance(self) -> FastAPI:
        """Create the request pipeline for optimus."""
        settings = self.settings
        metrics = RequestMetrics(SERVICE_NAME, settings.environment)
        app = FastAPI(
            title=SERVICE_NAME,
            version=settings.version,
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            # request order: each stage wraps every stage listed after it
            middleware=[
                Middleware(HealthCheckMiddleware, path=HEALTH_PATH),
                Middleware(MetricsMiddleware, metrics=metrics),
                Middleware(AccessLogMiddleware),
                Middleware(FaultBarrierMiddleware),
            ],
        )
        app.state.settings = settings
        app.state.rule_engine = self.rule_engine
        app.state.metrics = metrics

        app.include_router(version.router)
        app.include_router(transform.router)
        app.include_router(not_found.router)
        register_error_handlers(app)
        return app

    async def start(self) -> ServerHandle:
        """Start the optimus server; returns once the socket is listening."""
        if self.state is not ServerState.UNINITIALIZED:
            raise RuntimeError(f"Server cannot start from state {self.state.value!r}")

        host, port = self.settings.host, self.settings.port
        instance = self.get_instance()
        sock = None
        handle = None
        try:
            sock = _bind_socket(host, port)
            handle = await _serve(instance, sock, host)
            if self.settings.metrics_port is not None:
                start_metrics_exporter(instance.state.metrics, self.settings.metrics_port)
        except Exception as err:
            self.state = ServerState.FAILED
            if handle is not None:
                # uvicorn is already serving; shut it down before reporting
                await handle.stop()
            if sock is not None:
                sock.close()
            critical = CriticalError(
                "Unable to start server",
                ErrorContext(port=port, debug_info={"error": repr(err)}),
            )
            logger.critical(critical.message, extra=critical.to_log_extra(), exc_info=err)
            raise critical from err

        self.state = ServerState.LISTENING
        logger.info(
            "Optimus server listening", extra={"host": host, "port": handle.port},
        )
        return handle


def _bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.create_server((host, port), family=family)
    sock.set_inheritable(True)
    return sock


async def _serve(app: FastAPI, sock: socket.socket, host: str) -> ServerHandle:
    config = uvicorn.Config(app, log_config=None, access_log=False)
    server = uvicorn.Server(config)
    task = asyncio.create_task(server.serve(sockets=[sock]))
    while not server.started:
        if task.done():
            task.result()
            raise RuntimeError("Server stopped before it started listening")
        await asyncio.sleep(STARTUP_POLL_SECONDS)
    return ServerHandle(server=server, task=task, host=host, port=sock.getsockname()[1])
