"""Version endpoint: service name and configured version."""

from fastapi import APIRouter, Request

from optimus import SERVICE_NAME

router = APIRouter(tags=["version"])


@router.get("/version")
async def version(request: Request) -> dict:
    """Return ``{name, version}``; the request body is never read."""
    return {"name": SERVICE_NAME, "version": request.app.state.settings.version}
