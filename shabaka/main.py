from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shabaka.api.auth import router as auth_router
from shabaka.api.challenges import router as challenges_router
from shabaka.api.health import router as health_router
from shabaka.api.metrics_endpoint import router as metrics_router
from shabaka.api.payments import router as payments_router
from shabaka.api.progression import router as progression_router
from shabaka.api.stripe_link import router as stripe_link_router
from shabaka.api.tracking import router as tracking_router
from shabaka.core.config import SETTINGS
from shabaka.core.errors import register_exception_handlers
from shabaka.core.logging import setup_logging
from shabaka.db.engine import lifespan_db
from shabaka.db.redis import lifespan_redis
from shabaka.middleware.metrics import MetricsMiddleware
from shabaka.middleware.request_context import (
    RequestContextMiddleware,
    install_request_context_filter,
)

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
install_request_context_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so Redis closes before the engine is disposed.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="shabaka-backend",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(SETTINGS.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(auth_router)
app.include_router(payments_router)
app.include_router(stripe_link_router)
app.include_router(progression_router)
app.include_router(tracking_router)
app.include_router(challenges_router)

logger.info(
    "shabaka-backend started  env=%s log_level=%s port=%d payment_mode=%s docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.payment_mode,
    "on" if SETTINGS.is_dev else "off",
)
