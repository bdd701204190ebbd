"""
abtest_sdk.tier0_core.data
──────────────────────────────
Async SQL engine lifecycle, transaction boundaries, and the declarative base
for persisted experiment records.

Minimal stack: SQLAlchemy 2.x async (+ aiosqlite for local/dev)
Configure via: DATABASE_URL
"""
from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


# ── Base model ────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    """All ORM models inherit from this base."""
    pass


# ── Engine / session factory ──────────────────────────────────────────────────

def create_engine(url: str | None = None) -> AsyncEngine:
    """Build a new async engine. Pool settings are skipped for SQLite."""
    url = url or os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./abtest.db")
    pool_size = int(os.environ.get("DATABASE_POOL_SIZE", "5"))
    max_overflow = int(os.environ.get("DATABASE_MAX_OVERFLOW", "10"))

    kwargs: dict[str, Any] = {"echo": os.getenv("DATABASE_ECHO", "").lower() == "true"}

    # SQLite doesn't support pool settings
    if not url.startswith("sqlite"):
        kwargs["pool_size"] = pool_size
        kwargs["max_overflow"] = max_overflow

    return create_async_engine(url, **kwargs)


def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def transaction(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager that yields a transactional session.
    Commits on clean exit, rolls back on exception, always closes.

    Usage:
        async with transaction(factory) as session:
            row = await session.get(ExperimentRow, experiment_id)
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables registered on Base. Idempotent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = [
    "Base", "create_engine", "session_factory", "transaction", "create_schema",
]
