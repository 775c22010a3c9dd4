"""
Database Engine and Session Management

This module builds the async SQLAlchemy engine and session factory used by
the SQL durable store.

Key Features:
- Per-dialect engine configuration (SQLite needs NullPool and
  check_same_thread=False, server databases get a pre-pinged pool)
- Async session management with expire_on_commit disabled so returned
  models stay readable after commit
- init_db() creates missing tables on startup
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

# Import models so their tables are registered on SQLModel.metadata
from shortlink.db import models  # noqa: F401


def is_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def build_engine(database_url: str, **kwargs: Any) -> AsyncEngine:
    """
    Create the async engine with dialect-specific configuration.

    SQLite:
    - NullPool: file-based database doesn't benefit from pooling
    - check_same_thread=False: required for async SQLite operations
    - timeout: wait for the file lock instead of failing under concurrent writes
    """
    if is_sqlite(database_url):
        engine_kwargs: dict[str, Any] = {
            "poolclass": NullPool,
            "connect_args": {"check_same_thread": False, "timeout": 30},
            "echo": False,
        }
    else:
        engine_kwargs = {
            "pool_size": 20,
            "max_overflow": 10,
            "pool_pre_ping": True,
            "echo": False,
        }
    engine_kwargs.update(kwargs)
    return create_async_engine(database_url, **engine_kwargs)


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Create the async session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=SQLModelAsyncSession,
        expire_on_commit=False,  # Prevents SQLAlchemy from expiring objects after commit
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
