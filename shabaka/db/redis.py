"""Redis connection management.

Mirrors engine.py: a pool when REDIS_URL is set, None otherwise.  The
token blacklist, the progression cache and the notification queue each
check for None and fall back to their in-memory implementation.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from shabaka.core.config import SETTINGS

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
    if redis_pool is None:
        logger.info("No REDIS_URL configured, Redis features use in-memory fallbacks")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected")
    except Exception:
        # Keep serving; a revocation check against a dead Redis surfaces
        # as a 500 on the affected request rather than a failed boot.
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
