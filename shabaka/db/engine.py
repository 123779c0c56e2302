"""Async SQLAlchemy engine and session factory.

With DATABASE_URL set, the container builds Postgres repositories that
open one short transaction per repository call through
``async_session_factory``.  Without it both exports are None and the
container falls back to in-memory repositories.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from shabaka.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for every table in shabaka/db/tables.py."""


if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,
        pool_size=5,
        max_overflow=10,
    )
    async_session_factory: async_sessionmaker[AsyncSession] | None = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


@asynccontextmanager
async def lifespan_db():
    if engine is None:
        logger.info("No DATABASE_URL configured, using in-memory repositories")
        yield
        return

    logger.info("Database engine created: %s", engine.url.render_as_string(hide_password=True))
    yield
    await engine.dispose()
    logger.info("Database engine disposed")
