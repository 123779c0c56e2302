"""Read-through cache for progression overviews.

Entries carry a TTL as a safety net and are also dropped explicitly:
every tracking write for a user deletes ``progression:<user_id>:*``, so
the next overview request recomputes from the tracking store.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from shabaka.core.metrics import CACHE_OPERATIONS


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...
    async def delete_pattern(self, pattern: str) -> None: ...


class InMemoryCacheService:
    """Dict-backed cache; TTLs are not enforced."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        value = self._store.get(key)
        CACHE_OPERATIONS.labels(operation="hit" if value is not None else "miss").inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete_pattern(self, pattern: str) -> None:
        prefix = pattern.rstrip("*")
        for k in [k for k in self._store if k.startswith(prefix)]:
            del self._store[k]


class RedisCacheService:
    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        value = await self._redis.get(f"{self._PREFIX}{key}")
        CACHE_OPERATIONS.labels(operation="hit" if value is not None else "miss").inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete_pattern(self, pattern: str) -> None:
        # SCAN rather than KEYS so a large keyspace never blocks Redis
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._PREFIX}{pattern}", count=100
            )
            if keys:
                await self._redis.delete(*keys)
            if cursor == 0:
                break
