"""Tests for the quota ledger and the 429 error it produces."""

from __future__ import annotations

import pytest

from app.adapters.rate_limit import InMemoryQuotaStore, RedisQuotaStore
from app.core.errors import QuotaBackendError
from app.core.identity import AnonymousIdentity, KeyedIdentity
from app.core.rate_limit import QuotaLedger, build_quota_exceeded_error

DAY = 86400


def _ledger(store, **kwargs) -> QuotaLedger:
    return QuotaLedger(store, max_requests=kwargs.pop("max_requests", 500), window_seconds=DAY, **kwargs)


@pytest.mark.asyncio
async def test_allows_500_and_blocks_the_501st(fake_time) -> None:
    ledger = _ledger(InMemoryQuotaStore(window_seconds=DAY, clock=fake_time.time))
    caller = AnonymousIdentity(address="198.51.100.4")

    for _ in range(499):
        assert (await ledger.admit(caller)).allowed is True

    last_allowed = await ledger.admit(caller)
    assert last_allowed.allowed is True
    assert last_allowed.count == 500
    assert last_allowed.remaining == 0
    assert last_allowed.retry_after_seconds is None

    blocked = await ledger.admit(caller)
    assert blocked.allowed is False
    assert blocked.count == 501
    assert blocked.retry_after_seconds == DAY
    assert blocked.reset_at == int(fake_time.current + DAY)


@pytest.mark.asyncio
async def test_quota_is_per_address(fake_time) -> None:
    ledger = _ledger(InMemoryQuotaStore(window_seconds=DAY, clock=fake_time.time), max_requests=1)

    assert (await ledger.admit(AnonymousIdentity("10.0.0.1"))).allowed is True
    assert (await ledger.admit(AnonymousIdentity("10.0.0.1"))).allowed is False
    assert (await ledger.admit(AnonymousIdentity("10.0.0.2"))).allowed is True


@pytest.mark.asyncio
async def test_window_reopens_after_expiry(fake_time) -> None:
    ledger = _ledger(InMemoryQuotaStore(window_seconds=DAY, clock=fake_time.time), max_requests=1)
    caller = AnonymousIdentity("10.0.0.1")

    await ledger.admit(caller)
    assert (await ledger.admit(caller)).allowed is False

    fake_time.advance(DAY)
    assert (await ledger.admit(caller)).allowed is True


@pytest.mark.asyncio
async def test_refund_gives_back_one_request(fake_time) -> None:
    ledger = _ledger(InMemoryQuotaStore(window_seconds=DAY, clock=fake_time.time), max_requests=1)
    caller = AnonymousIdentity("10.0.0.1")

    await ledger.admit(caller)
    await ledger.refund(caller)

    assert (await ledger.admit(caller)).allowed is True


@pytest.mark.asyncio
async def test_falls_back_to_memory_when_redis_fails(fake_redis, fake_time) -> None:
    memory = InMemoryQuotaStore(window_seconds=DAY, clock=fake_time.time)
    ledger = _ledger(
        RedisQuotaStore(fake_redis, window_seconds=DAY, clock=fake_time.time),
        max_requests=2,
        fallback=memory,
    )
    caller = AnonymousIdentity("10.0.0.1")
    fake_redis.fail = True

    first = await ledger.admit(caller)
    assert first.allowed is True
    assert first.backend == "memory"
    assert (await ledger.admit(caller)).allowed is True
    assert (await ledger.admit(caller)).allowed is False
    assert ledger.backend_name == "redis"


@pytest.mark.asyncio
async def test_backend_error_propagates_without_fallback(fake_redis, fake_time) -> None:
    ledger = _ledger(RedisQuotaStore(fake_redis, window_seconds=DAY, clock=fake_time.time))
    fake_redis.fail = True

    with pytest.raises(QuotaBackendError):
        await ledger.admit(AnonymousIdentity("10.0.0.1"))


def test_ledger_keys() -> None:
    ledger = _ledger(InMemoryQuotaStore(window_seconds=DAY))

    assert ledger.ledger_key(AnonymousIdentity("10.0.0.1")) == "ratelimit:10.0.0.1"
    assert ledger.ledger_key(KeyedIdentity(key_id="7")) == "unlimited:7"


@pytest.mark.parametrize("kwargs", [{"max_requests": 0}, {"window_seconds": 0}])
def test_invalid_ledger_args(kwargs: dict) -> None:
    params = {"max_requests": 1, "window_seconds": 1, **kwargs}
    with pytest.raises(ValueError):
        QuotaLedger(InMemoryQuotaStore(window_seconds=1), **params)


@pytest.mark.asyncio
async def test_quota_exceeded_error_body_and_headers(fake_time) -> None:
    ledger = _ledger(InMemoryQuotaStore(window_seconds=DAY, clock=fake_time.time), max_requests=1)
    caller = AnonymousIdentity("10.0.0.1")
    await ledger.admit(caller)
    decision = await ledger.admit(caller)

    error = build_quota_exceeded_error(
        decision,
        window_seconds=DAY,
        tz_name="UTC",
        contact="owner@example.com",
    )

    assert error.status_code == 429
    assert error.code == "Daily limit exceeded"
    assert "limit of 1 requests" in error.message
    assert error.details["limit"] == 1
    assert error.details["retryAfter"] == DAY
    assert error.details["getKey"] == "Contact: owner@example.com"
    # 1000 + 86400 seconds after the epoch
    assert error.details["resetTime"] == "02.01.1970 00:16:40"
    assert error.headers["Retry-After"] == str(DAY)
    assert error.headers["RateLimit-Remaining"] == "0"


@pytest.mark.asyncio
async def test_quota_headers_can_be_disabled(fake_time) -> None:
    ledger = _ledger(InMemoryQuotaStore(window_seconds=DAY, clock=fake_time.time), max_requests=1)
    caller = AnonymousIdentity("10.0.0.1")
    await ledger.admit(caller)

    error = build_quota_exceeded_error(
        await ledger.admit(caller),
        window_seconds=DAY,
        tz_name="UTC",
        contact="owner@example.com",
        include_headers=False,
    )

    assert error.headers == {}


@pytest.mark.asyncio
async def test_reset_reopens_a_full_window(fake_redis, fake_time) -> None:
    ledger = _ledger(RedisQuotaStore(fake_redis, window_seconds=DAY, clock=fake_time.time), max_requests=2)
    caller = AnonymousIdentity("10.0.0.1")
    for _ in range(3):
        await ledger.admit(caller)

    await ledger.reset(caller)

    decision = await ledger.admit(caller)
    assert decision.allowed is True
    assert decision.count == 1
    assert decision.remaining == 1


@pytest.mark.asyncio
async def test_reset_clears_fallback_while_redis_is_down(fake_redis, fake_time) -> None:
    ledger = _ledger(
        RedisQuotaStore(fake_redis, window_seconds=DAY, clock=fake_time.time),
        max_requests=1,
        fallback=InMemoryQuotaStore(window_seconds=DAY, clock=fake_time.time),
    )
    caller = AnonymousIdentity("10.0.0.1")
    fake_redis.fail = True
    assert (await ledger.admit(caller)).allowed is True
    assert (await ledger.admit(caller)).allowed is False

    await ledger.reset(caller)

    assert (await ledger.admit(caller)).allowed is True
