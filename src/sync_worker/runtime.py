"""Run async service code from synchronous Celery tasks."""

import asyncio
from typing import Any, Awaitable, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from dropship_service.config import Settings, get_settings
from dropship_service.infrastructure.database.connection import dispose_engine, get_db_session
from dropship_service.infrastructure.redis import CacheService, close_redis, get_redis_client
from dropship_service.integrations.cj import CJClient, RateLimiter
from dropship_service.services.cj_config import CJConfigService

logger = structlog.get_logger()

CJJob = Callable[[AsyncSession, CJClient, CacheService, Settings], Awaitable[dict[str, Any]]]
DBJob = Callable[[AsyncSession], Awaitable[dict[str, Any]]]


async def _run_cj_job(job: CJJob) -> dict[str, Any]:
    settings = get_settings()
    cache = CacheService(await get_redis_client())
    client: CJClient | None = None
    try:
        async with get_db_session() as session:
            config = await CJConfigService(session, settings).get_config()
            if not config.enabled:
                logger.info("CJ integration disabled, job skipped")
                return {"skipped": True}

            client = CJClient(
                settings, cache=cache, rate_limiter=RateLimiter.for_tier(config.tier)
            )
            return await job(session, client, cache, settings)
    finally:
        if client is not None:
            await client.close()
        await close_redis()
        await dispose_engine()


async def _run_db_job(job: DBJob) -> dict[str, Any]:
    try:
        async with get_db_session() as session:
            return await job(session)
    finally:
        await dispose_engine()


def run_cj_job(job: CJJob) -> dict[str, Any]:
    """Run a job needing the database and a CJ client in a fresh event loop.

    Each task gets its own loop, so pooled connections are disposed at the end.
    """
    return asyncio.run(_run_cj_job(job))


def run_db_job(job: DBJob) -> dict[str, Any]:
    return asyncio.run(_run_db_job(job))
