"""Rule Engine: the rule-application collaborator behind ``PUT /``.

Invariants:
    - The pipeline never interprets rules; it relays the engine's output or error
    - Engines signal failures by raising TransformError (message + optional status)
    - Engines may be plain callables or coroutine functions
    - The engine is resolved once at startup from a "module:attribute" path

Design Decisions:
    - Protocol, not a base class: any callable satisfies the contract, including MagicMock in tests
    - Sync engines run in the threadpool: a CPU-bound transform never blocks the event loop
"""

import importlib
import inspect
import logging
from typing import Any, Awaitable, Protocol, Union

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

DEFAULT_RULE_ENGINE = "optimus.services.rule_engine:passthrough"


class TransformError(Exception):
    """Failure signalled by a rule engine."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status


class RuleEngine(Protocol):
    """Applies transformation rules to a parsed request body."""

    def __call__(self, body: Any) -> Union[Any, Awaitable[Any]]: ...


async def apply_rules(engine: RuleEngine, body: Any) -> Any:
    """Run ``engine`` on ``body`` without blocking the event loop."""
    if _is_async_callable(engine):
        return await engine(body)
    result = await run_in_threadpool(engine, body)
    if inspect.isawaitable(result):
        return await result
    return result


def _is_async_callable(obj: Any) -> bool:
    return inspect.iscoroutinefunction(obj) or inspect.iscoroutinefunction(
        getattr(obj, "__call__", None),
    )


def load_rule_engine(path: str) -> RuleEngine:
    """Import a rule engine from ``"package.module:attribute"``.

    A class attribute is instantiated with no arguments; any other callable
    is used as is.

    Raises:
        ValueError: malformed path, missing attribute, or non-callable target.
        ImportError: the module cannot be imported.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"Rule engine path must look like 'package.module:attribute', got {path!r}",
        )
    module = importlib.import_module(module_name)
    try:
        target = getattr(module, attr)
    except AttributeError:
        raise ValueError(f"Module {module_name!r} has no attribute {attr!r}")
    if inspect.isclass(target):
        target = target()
    if not callable(target):
        raise ValueError(f"Rule engine {path!r} is not callable")
    logger.info("Rule engine loaded", extra={"rule_engine": path})
    return target


def passthrough(body: Any) -> Any:
    """Built-in engine: validates the envelope and returns ``input`` as is.

    No rule language is bundled, so any non-empty rule list is refused.
    """
    if not isinstance(body, dict):
        raise TransformError("Request body must be a JSON object", 400)
    rules = body.get("rules", [])
    if not isinstance(rules, list):
        raise TransformError("'rules' must be an array", 400)
    if rules:
        raise TransformError("No rule engine is configured for non-empty rules", 501)
    return body.get("input", {})
