"""In-memory fixed-window quota store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Windows are anchored at each key's first request, not at clock boundaries.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractQuotaStore, WindowHit

# Expired windows are swept once the table grows past this many keys
_SWEEP_THRESHOLD = 10_000


@dataclass
class _WindowState:
    count: int
    expires_at: float


class InMemoryQuotaStore(AbstractQuotaStore):
    """Quota counters held in a dict, expiring like Redis keys with a TTL.

    Important:
        This store is per-process only. With several Uvicorn/Gunicorn
        workers or several hosts, each enforces its own independent limit.
    """

    name = "memory"

    def __init__(
        self,
        *,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
        sweep_threshold: int = _SWEEP_THRESHOLD,
    ) -> None:
        """Initialize the store.

        Args:
            window_seconds: Lifetime of a window from its first request.
            clock: Time source function returning UNIX time in seconds.
            sweep_threshold: Table size from which expired windows are swept.

        Raises:
            ValueError: If window_seconds is invalid.
        """
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._window_seconds = window_seconds
        self._clock = clock
        self._sweep_threshold = sweep_threshold
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}

    def _live_state(self, key: str, now: float) -> _WindowState | None:
        state = self._state_by_key.get(key)
        if state is not None and state.expires_at <= now:
            del self._state_by_key[key]
            return None
        return state

    def _sweep_expired_locked(self, now: float) -> None:
        # Windows are appended in creation order with a fixed length, so the
        # table is ordered by expiry and the sweep stops at the first live one.
        expired: list[str] = []
        for key, state in self._state_by_key.items():
            if state.expires_at > now:
                break
            expired.append(key)
        for key in expired:
            del self._state_by_key[key]

    async def increment(self, key: str) -> WindowHit:
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        with self._lock:
            if len(self._state_by_key) >= self._sweep_threshold:
                self._sweep_expired_locked(now)

            state = self._live_state(key, now)
            if state is None:
                state = _WindowState(count=0, expires_at=now + self._window_seconds)
                self._state_by_key[key] = state

            state.count += 1
            return WindowHit(count=state.count, reset_at=state.expires_at)

    async def decrement(self, key: str) -> None:
        now = self._clock()
        with self._lock:
            state = self._live_state(key, now)
            if state is not None and state.count > 0:
                state.count -= 1

    async def reset(self, key: str) -> None:
        with self._lock:
            self._state_by_key.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)
