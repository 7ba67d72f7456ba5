"""SQLAlchemy implementations of the storage interfaces."""

from __future__ import annotations

import json
import logging
import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import String, cast, func, select, true
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.adapters.storage.base import (
    AbstractApiKeyRepository,
    AbstractWordRepository,
    ApiKeyRecord,
    WordRecord,
)
from app.adapters.storage.database import Database
from app.adapters.storage.models import ApiKey, WordEntry
from app.core.errors import BackendAppError

logger = logging.getLogger(__name__)

# Rows fetched by the synonym pre-filter before exact matching in Python
_SYNONYM_SCAN_LIMIT = 25


def _as_list(value: Any) -> list[str]:
    """Coerce a JSON column value into a list of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        # Drivers without native JSON support hand back the raw text
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return [value]
    if not isinstance(value, list):
        return []
    return ["" if item is None else str(item) for item in value]


def _to_record(row: WordEntry) -> WordRecord:
    return WordRecord(
        id=row.id,
        word=row.word or "",
        synonyms=_as_list(row.synonyms),
        antonyms=_as_list(row.antonyms),
    )


@asynccontextmanager
async def _storage_errors(operation: str) -> AsyncIterator[None]:
    """Translate driver failures into a 500-class application error."""
    try:
        yield
    except (SQLAlchemyError, OSError) as exc:
        logger.error(
            "storage.query_failed",
            extra={"operation": operation, "error_type": type(exc).__name__},
            exc_info=True,
        )
        raise BackendAppError(
            code="Internal server error",
            message="A server error occurred.",
        ) from exc


class SqlWordRepository(AbstractWordRepository):
    """Word lookups against the ``data_json_tbl`` table."""

    def __init__(self, database: Database, *, rng: random.Random | None = None) -> None:
        self._database = database
        self._rng = rng or random.Random()

    async def find_by_word(self, term: str) -> WordRecord | None:
        stmt = (
            select(WordEntry)
            .where(func.lower(func.trim(WordEntry.word)) == term)
            .limit(1)
        )
        async with _storage_errors("find_by_word"), self._database.session() as session:
            row = (await session.execute(stmt)).scalars().first()
        return _to_record(row) if row is not None else None

    async def find_by_synonym(self, term: str) -> WordRecord | None:
        # Portable JSON containment: LIKE on the serialized array, then an
        # exact check so substrings of longer entries never match.
        needle = json.dumps(term, ensure_ascii=False)
        stmt = (
            select(WordEntry)
            .where(func.lower(cast(WordEntry.synonyms, String)).contains(needle, autoescape=True))
            .order_by(WordEntry.id)
            .limit(_SYNONYM_SCAN_LIMIT)
        )
        async with _storage_errors("find_by_synonym"), self._database.session() as session:
            rows = (await session.execute(stmt)).scalars().all()

        for row in rows:
            record = _to_record(row)
            if any(s.strip().lower() == term for s in record.synonyms):
                return record
        return None

    async def pick_random(self) -> WordRecord | None:
        async with _storage_errors("pick_random"), self._database.session() as session:
            total = await self._count(session)
            if not total:
                return None
            offset = self._rng.randrange(total)
            stmt = select(WordEntry).order_by(WordEntry.id).offset(offset).limit(1)
            row = (await session.execute(stmt)).scalars().first()
        return _to_record(row) if row is not None else None

    async def _count(self, session: AsyncSession) -> int:
        total = await session.scalar(select(func.count()).select_from(WordEntry))
        return int(total or 0)


class SqlApiKeyRepository(AbstractApiKeyRepository):
    """Active-key lookups against the ``api_keys`` table."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def find_active(self, secret: str) -> ApiKeyRecord | None:
        stmt = (
            select(ApiKey)
            .where(ApiKey.api_key == secret, ApiKey.is_active == true())
            .limit(1)
        )
        async with _storage_errors("find_active_api_key"), self._database.session() as session:
            row = (await session.execute(stmt)).scalars().first()

        if row is None:
            return None
        return ApiKeyRecord(id=str(row.id), description=row.description, is_active=True)
