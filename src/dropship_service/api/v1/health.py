"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service import __version__
from dropship_service.config import Settings, get_settings
from dropship_service.infrastructure.database.connection import get_session, ping_database
from dropship_service.infrastructure.redis import CacheService, get_cache
from dropship_service.middleware.timing import get_endpoint_stats

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str
    timestamp: str
    dependencies: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness depends on the database only.

    Redis and CJ problems are listed in ``degraded``: the cache is bypassed
    without Redis and storefront reads do not need CJ.
    """

    ready: bool
    checks: dict[str, bool]
    degraded: list[str]


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Basic health check endpoint.

    Reports the configured backends without touching them, so it stays
    cheap enough for load balancer checks.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies={
            "database": "sqlite" if settings.is_sqlite else "postgresql",
            "redis": settings.redis_host,
            "cj": {
                "enabled": settings.cj_enabled,
                "tier": settings.cj_tier,
                "credentials": settings.cj_credentials_configured,
                "webhook_secret": bool(settings.cj_webhook_secret),
            },
        },
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(
    session: AsyncSession = Depends(get_session),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> ReadinessResponse:
    """Readiness check: the database must answer."""
    checks = {
        "database": await ping_database(session),
        "redis": await cache.health_check(),
        "cj_credentials": settings.cj_credentials_configured or not settings.cj_enabled,
    }
    return ReadinessResponse(
        ready=checks["database"],
        checks=checks,
        degraded=[name for name, ok in checks.items() if not ok and name != "database"],
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Liveness check; answers as long as the process serves requests."""
    return {"status": "alive"}


@router.get("/health/endpoints")
async def endpoint_latency() -> dict[str, dict]:
    """Per-route latency and error counts collected by the timing middleware."""
    return get_endpoint_stats()
