"""Search response cache.

Wraps a cache backend with key derivation, envelope validation and failure
isolation: a backend error is logged and treated as a miss on read and as
a no-op on write, so caching can never fail a request.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from app.adapters.cache.base import AbstractResponseCache
from app.core.errors import CacheBackendError
from app.schemas.synonyms import SearchResponse

logger = logging.getLogger(__name__)


class ResponseCache:
    """Memoizes success envelopes by normalized search term."""

    def __init__(
        self,
        backend: AbstractResponseCache,
        *,
        ttl_seconds: int = 3600,
        key_prefix: str = "synonyms",
        enabled: bool = True,
    ) -> None:
        self._backend = backend
        self._ttl = ttl_seconds
        self._prefix = key_prefix
        self.enabled = enabled

    @property
    def backend_name(self) -> str:
        return self._backend.name if self.enabled else "disabled"

    def key_for(self, term: str) -> str:
        return f"{self._prefix}:{term}"

    async def get(self, term: str) -> SearchResponse | None:
        """Return the cached envelope for ``term`` or None on miss/failure."""
        if not self.enabled or not term:
            return None

        key = self.key_for(term)
        try:
            raw = await self._backend.get(key)
        except CacheBackendError as exc:
            logger.warning(
                "cache.backend_error",
                extra={"operation": "get", "backend": self._backend.name, "error_msg": str(exc)},
            )
            return None

        if raw is None:
            logger.debug("cache.miss", extra={"cache_key": key})
            return None

        try:
            envelope = SearchResponse.model_validate(raw)
        except ValidationError:
            logger.warning("cache.invalid_entry", extra={"cache_key": key})
            return None

        logger.debug("cache.hit", extra={"cache_key": key})
        return envelope

    async def put(self, term: str, envelope: SearchResponse) -> bool:
        """Store the envelope for ``term``; returns False when it was not stored."""
        if not self.enabled or not term:
            return False

        key = self.key_for(term)
        payload: dict[str, Any] = envelope.to_payload()
        try:
            await self._backend.set(key, payload, self._ttl)
        except CacheBackendError as exc:
            logger.warning(
                "cache.backend_error",
                extra={"operation": "set", "backend": self._backend.name, "error_msg": str(exc)},
            )
            return False

        logger.debug("cache.set", extra={"cache_key": key, "ttl_s": self._ttl})
        return True

    async def invalidate(self, term: str) -> None:
        try:
            await self._backend.delete(self.key_for(term))
        except CacheBackendError as exc:
            logger.warning(
                "cache.backend_error",
                extra={"operation": "delete", "backend": self._backend.name, "error_msg": str(exc)},
            )
