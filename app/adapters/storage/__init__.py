"""Relational storage adapters for word records and API keys."""

from app.adapters.storage.base import (
    AbstractApiKeyRepository,
    AbstractWordRepository,
    ApiKeyRecord,
    WordRecord,
)
from app.adapters.storage.database import Database
from app.adapters.storage.sql import SqlApiKeyRepository, SqlWordRepository

__all__ = [
    "AbstractApiKeyRepository",
    "AbstractWordRepository",
    "ApiKeyRecord",
    "Database",
    "SqlApiKeyRepository",
    "SqlWordRepository",
    "WordRecord",
]
