"""Liveness and readiness probes.

/health answers "is the process alive" and reports each backing service:
always 200, with ``status`` "degraded" when a configured dependency does
not answer.

/ready answers "can this instance take traffic". Postgres is critical when
configured (there is no fallback for progress records once DATABASE_URL is
set), so an unreachable database makes the instance unready with 503.
Redis is not: the dispatcher logs enqueue failures and the cache misses.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from progress_service.db import engine as db_engine
from progress_service.db import redis as db_redis

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

OK = "ok"
DEGRADED = "degraded"
NOT_CONFIGURED = "not_configured"


async def check_redis() -> str:
    if db_redis.redis_pool is None:
        return NOT_CONFIGURED
    try:
        await db_redis.redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return DEGRADED
    return OK


async def check_database() -> str:
    if db_engine.engine is None:
        return NOT_CONFIGURED
    try:
        async with db_engine.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return DEGRADED
    return OK


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await check_database(),
        "redis": await check_redis(),
    }
    overall = DEGRADED if DEGRADED in checks.values() else OK
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await check_database() == DEGRADED:
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
