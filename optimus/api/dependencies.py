"""Body-parsing stage, exposed as a FastAPI dependency for routes that take a body."""

from typing import Any

from fastapi import Request

from optimus.core.errors import PayloadTooLargeError
from optimus.core.request_body import decode_json_body


async def parse_body(request: Request) -> Any:
    """Read and decode the JSON body into ``request.state.body``.

    The read stops as soon as the configured limit is exceeded.
    """
    limit = request.app.state.settings.body_limit_bytes
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(limit)

    raw = bytearray()
    async for chunk in request.stream():
        raw.extend(chunk)
        if len(raw) > limit:
            raise PayloadTooLargeError(limit)

    body = decode_json_body(bytes(raw), request.headers.get("content-type"), limit)
    request.state.body = body
    return body
