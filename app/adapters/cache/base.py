"""Response cache interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class AbstractResponseCache(ABC):
    """Key/value cache of serialized response envelopes with a TTL.

    Values are overwritten, never merged, when a key is stored again.
    """

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> dict[str, Any] | None:
        """Return the cached value, or None when absent or expired.

        Raises:
            CacheBackendError: If the backing service is unreachable.
        """
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``.

        Raises:
            CacheBackendError: If the backing service is unreachable.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Drop ``key`` if present."""
        raise NotImplementedError
