"""Quota store interface.

The ledger depends on this abstraction, not on a concrete backend, so the
shared Redis store and the in-process fallback are interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class WindowHit:
    """Counter state right after an increment.

    Attributes:
        count: Requests counted in the current window, this one included.
        reset_at: UNIX epoch seconds when the window expires.
    """

    count: int
    reset_at: float


class AbstractQuotaStore(ABC):
    """Fixed-window counters keyed by identity.

    A window starts at the first increment for a key and is deleted once
    ``window_seconds`` have elapsed; the next increment opens a new one.
    """

    name: str = "abstract"

    @abstractmethod
    async def increment(self, key: str) -> WindowHit:
        """Atomically count one request for ``key``.

        Raises:
            QuotaBackendError: If the backing service is unreachable.
        """
        raise NotImplementedError

    @abstractmethod
    async def decrement(self, key: str) -> None:
        """Give back one request to ``key`` within its current window."""
        raise NotImplementedError

    @abstractmethod
    async def reset(self, key: str) -> None:
        """Delete the window for ``key``."""
        raise NotImplementedError
