"""
Health check endpoints.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from gatehouse.api.dependencies import get_deps
from gatehouse.core.container import Dependencies

router = APIRouter(tags=["Health"])


@router.get("/ping", response_class=PlainTextResponse)
async def ping():
    """Liveness probe. No auth, no audit entry."""
    return "Health Check"


@router.get("/health")
async def health_check(deps: Dependencies = Depends(get_deps)):
    """
    Health check endpoint.

    Returns service status and the configured backends.
    """
    return {
        "status": "healthy",
        "service": "gatehouse",
        "environment": deps.settings.ENVIRONMENT,
        "database": deps.credentials.name,
    }
