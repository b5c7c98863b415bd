"""Redis connection management.

Mirrors engine.py: with REDIS_URL a shared async connection pool backs the
notification queue and the course-progress cache; without it both fall
back to in-memory implementations.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from progress_service.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Ping on startup, close the pool on shutdown.

    An unreachable Redis is logged, not fatal: writes to the queue will
    fail and be logged by the dispatcher, reads miss the cache.
    """
    if redis_pool is None:
        logger.warning(
            "No REDIS_URL configured; queue and cache are in-memory and "
            "queued notifications are not delivered"
        )
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
