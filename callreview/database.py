"""Database engine and session factory construction for the worker."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from callreview.config.settings import DatabaseConfig

# Import models so they are attached to Base.metadata before table creation
from callreview.models import Base

logger = logging.getLogger(__name__)


def create_engine_from_settings(config: DatabaseConfig, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine with environment-appropriate pooling."""

    engine_options: dict[str, Any] = {
        "echo": echo,
        "future": True,
        "pool_pre_ping": True,
    }

    if config.serverless:
        # Disable pooling when working with serverless databases.
        engine_options["poolclass"] = NullPool

    return create_async_engine(config.url, **engine_options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory shared by the queue, repositories and stages."""

    return async_sessionmaker(
        engine,
        expire_on_commit=False,
        class_=AsyncSession,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create database tables if they do not exist."""

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Ensured database tables in default schema.")


async def ping(engine: AsyncEngine) -> bool:
    """Return True when the database answers a trivial query."""

    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


async def dispose_engine(engine: AsyncEngine) -> None:
    """Dispose of the engine and release pooled connections."""

    await engine.dispose()


__all__ = [
    "create_engine_from_settings",
    "create_session_factory",
    "init_models",
    "ping",
    "dispose_engine",
]
