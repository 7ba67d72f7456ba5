"""Quota counter stores.

The quota ledger talks to a store through a small interface so the same
window semantics run on Redis (shared by every instance) or in process
memory (per instance, used when Redis is absent or unreachable).
"""

from app.adapters.rate_limit.base import AbstractQuotaStore, WindowHit
from app.adapters.rate_limit.in_memory import InMemoryQuotaStore
from app.adapters.rate_limit.redis_store import RedisQuotaStore

__all__ = [
    "AbstractQuotaStore",
    "InMemoryQuotaStore",
    "RedisQuotaStore",
    "WindowHit",
]
