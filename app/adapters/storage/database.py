"""Database engine and session lifecycle."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.adapters.storage.models import Base


def _json_dumps(value: Any) -> str:
    # Keep non-ASCII words readable in the stored JSON so LIKE pre-filters match
    return json.dumps(value, ensure_ascii=False)


class Database:
    """Owns the async engine (bounded connection pool) and session factory.

    Constructed once at startup and disposed on shutdown. Every unit of work
    acquires a session through :meth:`session`, which returns the connection
    to the pool on every exit path.
    """

    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 10,
        max_overflow: int = 0,
        echo: bool = False,
    ) -> None:
        engine_kwargs: dict[str, Any] = {"echo": echo, "json_serializer": _json_dumps}
        if not url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,
            )

        self.engine = create_async_engine(url, **engine_kwargs)
        self._sessions = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Scoped session: rolled back on error, always closed."""
        async with self._sessions() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create missing tables (development and tests only)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
