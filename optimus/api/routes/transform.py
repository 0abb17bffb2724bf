"""Transform endpoint: relays the parsed body through the rule engine.

Invariants:
    - The rule engine is called exactly once per request, after the body parsed
    - Engine output is returned verbatim as JSON with status 200
    - TransformError becomes TransformFailedError with the engine's message/status
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from optimus.api.dependencies import parse_body
from optimus.core.errors import TransformFailedError
from optimus.services.rule_engine import TransformError, apply_rules

router = APIRouter(tags=["transform"])


@router.put("/")
async def transform(request: Request, body: Any = Depends(parse_body)):
    """Apply the configured rule engine to the request body."""
    engine = request.app.state.rule_engine
    try:
        result = await apply_rules(engine, body)
    except TransformError as e:
        raise TransformFailedError(e.message, e.status) from e
    return JSONResponse(content=result)
