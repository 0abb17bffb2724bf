"""Catch-all route: every unmatched method/path ends in NotFoundError."""

from fastapi import APIRouter

from optimus.core.errors import NotFoundError

router = APIRouter()

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
CATCH_ALL_ROUTE_NAME = "not_found"


@router.api_route(
    "/{path:path}", methods=ALL_METHODS, name=CATCH_ALL_ROUTE_NAME,
    include_in_schema=False,
)
async def not_found(path: str):
    raise NotFoundError()
