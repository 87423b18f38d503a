"""Async SQLAlchemy engine and session factory for users and bearer tokens.

The token store and the user directory each take a session factory instead
of a session, so every call opens and releases its own connection.
"""

import asyncio
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from headless_api.core.config import Settings, settings

logger = logging.getLogger(__name__)


def build_engine(cfg: Settings) -> AsyncEngine:
    """Create the async engine for the configured database."""
    kwargs: dict[str, Any] = {
        "pool_pre_ping": True,
        "echo": cfg.debug and cfg.log_level == "DEBUG",
    }
    # SQLite uses a single-connection pool; the sizing knobs don't apply
    if not cfg.is_sqlite:
        kwargs.update(
            pool_size=cfg.db_pool_size,
            max_overflow=cfg.db_max_overflow,
            pool_timeout=cfg.db_pool_timeout,
            pool_recycle=cfg.db_pool_recycle,
        )
    return create_async_engine(cfg.database_url, **kwargs)


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Users returned by the directory are read after their session closes
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings)

async_session_maker = build_session_maker(engine)

Base = declarative_base()


async def check_db_connection(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    timeout: float | None = None,
) -> bool:
    """Return True if ``SELECT 1`` succeeds within the token store deadline."""
    session_maker = session_maker or async_session_maker
    timeout = timeout if timeout is not None else settings.token_store_timeout_seconds

    async def _ping() -> None:
        async with session_maker() as session:
            await session.execute(text("SELECT 1"))

    try:
        await asyncio.wait_for(_ping(), timeout=timeout)
        return True
    except TimeoutError:
        logger.warning(f"Database connection check timed out after {timeout}s")
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Database connection check failed: {e}")
    return False
