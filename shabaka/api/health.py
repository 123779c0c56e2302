"""Liveness and readiness probes.

``/health`` always answers 200 and reports per-dependency status in the
body; ``/ready`` answers 503 when Postgres, the one dependency without
an in-memory fallback once configured, cannot be reached.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from sqlalchemy import text

from shabaka.core.config import SETTINGS
from shabaka.db.engine import engine
from shabaka.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"
    return "ok"


async def _check_database() -> str:
    if engine is None:
        return "not_configured"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {"database": await _check_database(), "redis": await _check_redis()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {
        "status": overall,
        "checks": checks,
        "paymentMode": SETTINGS.payment_mode,
    }


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
