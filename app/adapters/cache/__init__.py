"""Response cache backends (Redis or in-process)."""

from app.adapters.cache.base import AbstractResponseCache
from app.adapters.cache.in_memory import InMemoryResponseCache
from app.adapters.cache.redis_cache import RedisResponseCache

__all__ = [
    "AbstractResponseCache",
    "InMemoryResponseCache",
    "RedisResponseCache",
]
