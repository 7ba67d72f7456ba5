"""Redis-backed response cache."""

from __future__ import annotations

import json
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.adapters.cache.base import AbstractResponseCache
from app.core.errors import CacheBackendError


class RedisResponseCache(AbstractResponseCache):
    """Stores envelopes as JSON strings with ``SET ... EX``."""

    name = "redis"

    def __init__(self, client: Redis) -> None:
        self._client = client

    async def get(self, key: str) -> dict[str, Any] | None:
        try:
            raw = await self._client.get(key)
        except (RedisError, OSError) as exc:
            raise CacheBackendError(f"redis get failed: {type(exc).__name__}") from exc

        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise CacheBackendError("cached value is not valid JSON") from exc
        return value if isinstance(value, dict) else None

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        payload = json.dumps(value, ensure_ascii=False, default=str)
        try:
            await self._client.set(key, payload, ex=ttl_seconds)
        except (RedisError, OSError) as exc:
            raise CacheBackendError(f"redis set failed: {type(exc).__name__}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except (RedisError, OSError) as exc:
            raise CacheBackendError(f"redis delete failed: {type(exc).__name__}") from exc
