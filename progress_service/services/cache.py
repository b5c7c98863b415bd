"""Read-through cache for course-progress bundles.

  Client -> cache -> hit  -> return
  Client -> cache -> miss -> repos -> populate cache -> return

Two invalidation strategies cover each other:

  1. TTL (PROGRESS_CACHE_TTL): every entry expires on its own, so a
     missed invalidation can only serve stale data for a bounded time.
  2. Explicit delete: the event recorder drops the (student, course)
     entry after every recorded event, including cascaded module and
     course completions, once the unit of work has committed.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID

from progress_service.db.redis import redis_pool


def progress_key(student_email: str, course_id: UUID | str) -> str:
    return f"progress:{student_email}:{course_id}"


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value. Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL."""
        ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...


class InMemoryCacheService:
    """In-memory cache; no TTL enforcement.

    The autouse fixture in conftest.py clears the store between tests.
    """

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)


class RedisCacheService:
    """Redis-backed cache shared across API instances."""

    # Keeps cache keys apart from the task queue lists.
    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
