"""Request Body: pure JSON body decoding rules for the body-parsing stage.

Invariants:
    - Empty bodies and bodies declared as non-JSON decode to an empty object
    - Only objects and arrays are accepted at the top level
    - NaN and Infinity literals are malformed JSON, never Python floats
    - Every failure surfaces as an OptimusError, never a raw decode exception

Design Decisions:
    - Missing content type is parsed as JSON: curl-style clients omit it and still expect a 400 on garbage
    - Pure functions over raw bytes: the size/encoding/shape rules are testable without a request object
"""

import json
from typing import Any

from optimus.core.errors import BadRequestError, PayloadTooLargeError


def is_json_content_type(content_type: str | None) -> bool:
    """True for ``application/json`` and ``*/*+json`` media types."""
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def _reject_constant(name: str) -> Any:
    raise BadRequestError(f"Malformed JSON body: unexpected token {name}")


def decode_json_body(
    raw: bytes, content_type: str | None, limit: int,
) -> Any:
    """Decode a raw request body.

    A missing content type is treated as JSON. A present, non-JSON content
    type leaves the body unparsed and yields ``{}``.

    Raises:
        PayloadTooLargeError: body longer than ``limit`` bytes.
        BadRequestError: invalid UTF-8, malformed JSON, or a scalar top level.
    """
    if len(raw) > limit:
        raise PayloadTooLargeError(limit)
    if not raw.strip():
        return {}
    if content_type and not is_json_content_type(content_type):
        return {}
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise BadRequestError("Request body is not valid UTF-8")
    try:
        value = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise BadRequestError(
            f"Malformed JSON body: {e.msg} at line {e.lineno} column {e.colno}",
        )
    if not isinstance(value, (dict, list)):
        raise BadRequestError("JSON body must be an object or an array")
    return value
