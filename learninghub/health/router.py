"""Health check endpoints."""

from fastapi import APIRouter, Request

from learninghub.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - the process is up."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness probe - reports which backing services came up."""
    state = request.app.state
    database = getattr(state, "auth_service", None) is not None
    return {
        "status": "ready" if database else "degraded",
        "database": database,
        "redis": getattr(state, "redis", None) is not None,
        "email": getattr(state, "email_service", None) is not None,
        "storage": getattr(state, "storage_service", None) is not None,
        "payments": getattr(state, "payment_gateway", None) is not None,
    }


@router.get("")
async def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
