"""
Health check endpoints.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from authgate.core.dependencies import get_auth_flow
from authgate.infrastructure.cache import get_redis
from authgate.services.auth_flow import AuthFlow

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns:
        Health status
    """
    settings = request.app.state.settings
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@router.get("/health/ready")
async def readiness_check(
    request: Request,
    flow: AuthFlow = Depends(get_auth_flow),
) -> Dict[str, Any]:
    """
    Readiness check including the session backend.

    Returns:
        Readiness status with component health
    """
    settings = request.app.state.settings
    components = {
        "api": "healthy",
        "providers": "healthy" if len(flow.registry) else "unconfigured",
    }

    if settings.SESSION_BACKEND == "redis":
        try:
            redis_client = await get_redis()
            await redis_client.ping()
            components["session_store"] = "healthy"
        except Exception:
            components["session_store"] = "unhealthy"
    else:
        components["session_store"] = "healthy"

    ready = components["api"] == "healthy" and components["session_store"] == "healthy"

    return {
        "status": "ready" if ready else "not ready",
        "components": components,
    }
