"""Health check endpoint."""

from fastapi import APIRouter, Request
from datetime import datetime, timezone

from .. import __version__

router = APIRouter()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": _timestamp(),
        "service": "photo-stylizer",
        "version": __version__,
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness check; `configured` drives the missing-credential banner."""
    proxy = request.app.state.proxy
    return {
        "ready": True,
        "configured": proxy.is_configured,
        "timestamp": _timestamp(),
    }
