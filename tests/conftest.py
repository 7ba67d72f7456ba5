"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It ensures that the TESTING environment variable is set to prevent
loading the .env file during tests, and provides in-memory doubles for
the word store, the API key store and Redis.
"""

import os

# CRITICAL: Set this before any imports that might load settings
# This prevents Pydantic from loading the .env file in tests
os.environ["TESTING"] = "true"

# Default env vars so no test ever reaches a real MySQL or Redis
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.pop("REDIS_URL", None)
os.environ.setdefault("LOG_LEVEL", "WARNING")

from dataclasses import dataclass, field
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from app.adapters.cache import InMemoryResponseCache
from app.adapters.cache.base import AbstractResponseCache
from app.adapters.rate_limit import InMemoryQuotaStore
from app.adapters.storage.base import (
    AbstractApiKeyRepository,
    AbstractWordRepository,
    ApiKeyRecord,
    WordRecord,
)
from app.core.app_factory import create_app
from app.core.config import QuotaSettings, Settings
from app.core.container import ServiceContainer, build_pipeline
from app.core.errors import BackendAppError, CacheBackendError

VALID_KEY = "test-api-key-123"
INACTIVE_KEY = "test-api-key-inactive"


class FakeTime:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FakeWordRepository(AbstractWordRepository):
    """Word store over a list of records, matching like the SQL repository."""

    def __init__(self, records: list[WordRecord] | None = None) -> None:
        self.records = list(records or [])
        self.fail = False
        self.calls = 0

    def _check(self) -> None:
        self.calls += 1
        if self.fail:
            raise BackendAppError(code="Internal server error", message="A server error occurred.")

    async def find_by_word(self, term: str) -> WordRecord | None:
        self._check()
        for record in self.records:
            if record.word.strip().lower() == term:
                return record
        return None

    async def find_by_synonym(self, term: str) -> WordRecord | None:
        self._check()
        for record in self.records:
            if any(s.strip().lower() == term for s in record.synonyms):
                return record
        return None

    async def pick_random(self) -> WordRecord | None:
        self._check()
        return self.records[0] if self.records else None


class FakeApiKeyRepository(AbstractApiKeyRepository):
    """API key store keyed by secret."""

    def __init__(self, keys: dict[str, ApiKeyRecord] | None = None) -> None:
        self.keys = dict(keys or {})
        self.fail = False

    async def find_active(self, secret: str) -> ApiKeyRecord | None:
        if self.fail:
            raise BackendAppError(code="Internal server error", message="A server error occurred.")
        record = self.keys.get(secret)
        if record is None or not record.is_active:
            return None
        return record


class BrokenResponseCache(AbstractResponseCache):
    """Cache backend whose every call fails like an unreachable Redis."""

    name = "broken"

    async def get(self, key: str) -> dict[str, Any] | None:
        raise CacheBackendError("connection refused")

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        raise CacheBackendError("connection refused")

    async def delete(self, key: str) -> None:
        raise CacheBackendError("connection refused")


class FakeRedis:
    """Minimal async Redis double covering the commands the adapters use.

    Keys expire according to an injected clock. Setting ``fail`` makes every
    command raise a redis ConnectionError.
    """

    def __init__(self, clock: Callable[[], float]) -> None:
        self._clock = clock
        self._data: dict[str, Any] = {}
        self._expires: dict[str, float] = {}
        self.fail = False
        self.closed = False

    def _guard(self) -> None:
        if self.fail:
            raise RedisConnectionError("connection refused")

    def _purge(self, key: str) -> None:
        expires_at = self._expires.get(key)
        if expires_at is not None and expires_at <= self._clock():
            self._data.pop(key, None)
            self._expires.pop(key, None)

    async def ping(self) -> bool:
        self._guard()
        return True

    async def incr(self, key: str) -> int:
        self._guard()
        self._purge(key)
        self._data[key] = int(self._data.get(key, 0)) + 1
        return self._data[key]

    async def decr(self, key: str) -> int:
        self._guard()
        self._purge(key)
        self._data[key] = int(self._data.get(key, 0)) - 1
        return self._data[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self._guard()
        self._purge(key)
        if key not in self._data:
            return False
        self._expires[key] = self._clock() + seconds
        return True

    async def ttl(self, key: str) -> int:
        self._guard()
        self._purge(key)
        if key not in self._data:
            return -2
        expires_at = self._expires.get(key)
        if expires_at is None:
            return -1
        return int(expires_at - self._clock())

    async def exists(self, key: str) -> int:
        self._guard()
        self._purge(key)
        return int(key in self._data)

    async def get(self, key: str) -> Any:
        self._guard()
        self._purge(key)
        return self._data.get(key)

    async def set(self, key: str, value: Any, ex: int | None = None) -> bool:
        self._guard()
        self._data[key] = value
        if ex is not None:
            self._expires[key] = self._clock() + ex
        else:
            self._expires.pop(key, None)
        return True

    async def delete(self, key: str) -> int:
        self._guard()
        self._expires.pop(key, None)
        return int(self._data.pop(key, None) is not None)

    async def aclose(self) -> None:
        self.closed = True


def sample_records() -> list[WordRecord]:
    return [
        WordRecord(
            id=1,
            word="Fast",
            synonyms=["Quick", " rapid ", "swift"],
            antonyms=["Slow", "sluggish"],
        ),
        WordRecord(
            id=2,
            word="happy",
            synonyms=["glad", "cheerful"],
            antonyms=["sad"],
        ),
    ]


@dataclass
class Harness:
    """Everything a route test needs: the client plus the doubles behind it."""

    client: TestClient
    container: ServiceContainer
    words: FakeWordRepository
    api_keys: FakeApiKeyRepository
    quota_store: InMemoryQuotaStore
    cache_backend: AbstractResponseCache
    clock: FakeTime = field(default_factory=FakeTime)


def build_harness(
    *,
    records: list[WordRecord] | None = None,
    quota: QuotaSettings | None = None,
    cache_backend: AbstractResponseCache | None = None,
    raise_server_exceptions: bool = True,
) -> Harness:
    config = Settings(quota=quota or QuotaSettings())
    clock = FakeTime()
    words = FakeWordRepository(sample_records() if records is None else records)
    api_keys = FakeApiKeyRepository(
        {
            VALID_KEY: ApiKeyRecord(id="1", description="integration tests"),
            INACTIVE_KEY: ApiKeyRecord(id="2", description="revoked", is_active=False),
        }
    )
    quota_store = InMemoryQuotaStore(window_seconds=config.quota.window_seconds, clock=clock.time)
    backend = cache_backend or InMemoryResponseCache(max_entries=16, clock=clock.time)

    pipeline = build_pipeline(
        config,
        words=words,
        api_keys=api_keys,
        quota_store=quota_store,
        cache_backend=backend,
    )
    container = ServiceContainer(pipeline=pipeline)
    client = TestClient(create_app(container), raise_server_exceptions=raise_server_exceptions)
    return Harness(
        client=client,
        container=container,
        words=words,
        api_keys=api_keys,
        quota_store=quota_store,
        cache_backend=backend,
        clock=clock,
    )


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def fake_redis(fake_time: FakeTime) -> FakeRedis:
    return FakeRedis(clock=fake_time.time)


@pytest.fixture
def harness() -> Harness:
    return build_harness()


@pytest.fixture
def client(harness: Harness) -> TestClient:
    return harness.client


@pytest.fixture
def make_harness() -> Callable[..., Harness]:
    return build_harness


@pytest.fixture
def word_repository() -> FakeWordRepository:
    return FakeWordRepository(sample_records())


@pytest.fixture
def api_key_repository() -> FakeApiKeyRepository:
    return FakeApiKeyRepository(
        {
            VALID_KEY: ApiKeyRecord(id="1", description="integration tests"),
            INACTIVE_KEY: ApiKeyRecord(id="2", description="revoked", is_active=False),
        }
    )


@pytest.fixture
def broken_cache() -> BrokenResponseCache:
    return BrokenResponseCache()
