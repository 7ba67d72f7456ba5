"""Redis-backed fixed-window quota store.

Counters live in Redis so every API instance enforces one shared limit.
``INCR`` provides the atomic count; the TTL is set only by the request that
created the key, so the window runs from the first request.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.adapters.rate_limit.base import AbstractQuotaStore, WindowHit
from app.core.errors import QuotaBackendError

logger = logging.getLogger(__name__)


class RedisQuotaStore(AbstractQuotaStore):
    """Quota counters stored as Redis integers with a TTL."""

    name = "redis"

    def __init__(
        self,
        client: Redis,
        *,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        self._client = client
        self._window_seconds = window_seconds
        self._clock = clock

    async def increment(self, key: str) -> WindowHit:
        if not key:
            raise ValueError("key must be a non-empty string")

        try:
            count = int(await self._client.incr(key))
            if count == 1:
                await self._client.expire(key, self._window_seconds)
                ttl = self._window_seconds
            else:
                ttl = int(await self._client.ttl(key))
                if ttl < 0:
                    # Creator died between INCR and EXPIRE; never leave a
                    # counter without a window.
                    logger.warning("quota.window_without_ttl", extra={"ttl": ttl})
                    await self._client.expire(key, self._window_seconds)
                    ttl = self._window_seconds
        except (RedisError, OSError) as exc:
            raise QuotaBackendError(f"redis increment failed: {type(exc).__name__}") from exc

        return WindowHit(count=count, reset_at=self._clock() + ttl)

    async def decrement(self, key: str) -> None:
        try:
            # Only touch live windows; DECR on a missing key would create one
            # without a TTL.
            if await self._client.exists(key):
                await self._client.decr(key)
        except (RedisError, OSError) as exc:
            raise QuotaBackendError(f"redis decrement failed: {type(exc).__name__}") from exc

    async def reset(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except (RedisError, OSError) as exc:
            raise QuotaBackendError(f"redis delete failed: {type(exc).__name__}") from exc
