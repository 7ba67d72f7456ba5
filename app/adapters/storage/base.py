"""Storage interfaces consumed by the lookup and credential layers.

The HTTP layer and services depend on these abstractions only, so tests can
swap in in-memory repositories and deployments can point at any database
SQLAlchemy supports.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class WordRecord:
    """A word with its synonyms and antonyms as stored (not normalized)."""

    word: str
    synonyms: list[str] = field(default_factory=list)
    antonyms: list[str] = field(default_factory=list)
    id: int | None = None


@dataclass(frozen=True)
class ApiKeyRecord:
    """An API key row. The secret itself is never carried around."""

    id: str
    description: str | None = None
    is_active: bool = True


class AbstractWordRepository(ABC):
    """Read-only access to word records."""

    @abstractmethod
    async def find_by_word(self, term: str) -> WordRecord | None:
        """Return the record whose trimmed, lowercased word equals ``term``."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_synonym(self, term: str) -> WordRecord | None:
        """Return the first record listing ``term`` among its synonyms."""
        raise NotImplementedError

    @abstractmethod
    async def pick_random(self) -> WordRecord | None:
        """Return a uniformly random record, or None when the table is empty."""
        raise NotImplementedError


class AbstractApiKeyRepository(ABC):
    """Lookup of API keys by secret."""

    @abstractmethod
    async def find_active(self, secret: str) -> ApiKeyRecord | None:
        """Return the active key matching ``secret`` exactly, if any.

        Raises:
            BackendAppError: If the store cannot be queried.
        """
        raise NotImplementedError
