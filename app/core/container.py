"""Service container: explicit construction and teardown of backend handles.

Built once when the application starts and stored on ``app.state``; routes
reach services only through it. Tests build their own container with fake
repositories and in-process backends.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.adapters.cache import InMemoryResponseCache, RedisResponseCache
from app.adapters.cache.base import AbstractResponseCache
from app.adapters.rate_limit import InMemoryQuotaStore, RedisQuotaStore
from app.adapters.rate_limit.base import AbstractQuotaStore
from app.adapters.storage import (
    AbstractApiKeyRepository,
    AbstractWordRepository,
    Database,
    SqlApiKeyRepository,
    SqlWordRepository,
)
from app.core.auth import CredentialVerifier
from app.core.config import Settings
from app.core.rate_limit import QuotaLedger
from app.services.pipeline import PipelineOptions, SearchPipeline
from app.services.response_cache import ResponseCache
from app.services.synonym_service import SynonymService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Long-lived service handles shared by all requests."""

    pipeline: SearchPipeline
    database: Database | None = None
    redis_client: redis.Redis | None = None

    @property
    def ledger(self) -> QuotaLedger:
        return self.pipeline.ledger

    @property
    def cache(self) -> ResponseCache:
        return self.pipeline.cache

    async def aclose(self) -> None:
        """Release network resources; safe to call more than once."""
        if self.redis_client is not None:
            try:
                await self.redis_client.aclose()
            except (RedisError, OSError):
                logger.warning("redis.close_failed", exc_info=True)
            self.redis_client = None
        if self.database is not None:
            await self.database.dispose()
            self.database = None


def build_pipeline(
    config: Settings,
    *,
    words: AbstractWordRepository,
    api_keys: AbstractApiKeyRepository,
    quota_store: AbstractQuotaStore,
    cache_backend: AbstractResponseCache,
    quota_fallback: AbstractQuotaStore | None = None,
) -> SearchPipeline:
    """Wire the search pipeline from already-constructed backends."""
    ledger = QuotaLedger(
        quota_store,
        max_requests=config.quota.max_requests,
        window_seconds=config.quota.window_seconds,
        key_prefix=config.quota.key_prefix,
        fallback=quota_fallback,
    )
    cache = ResponseCache(
        cache_backend,
        ttl_seconds=config.cache.ttl_seconds,
        key_prefix=config.cache.key_prefix,
        enabled=config.cache.enabled,
    )
    options = PipelineOptions(
        quota_enabled=config.quota.enabled,
        refund_on_server_error=config.quota.refund_on_server_error,
        include_quota_headers=config.quota.include_headers,
        display_timezone=config.app.display_timezone,
        powered_by=config.app.api_name,
        contact=config.app.contact,
    )
    return SearchPipeline(
        verifier=CredentialVerifier(api_keys, contact=config.app.contact),
        ledger=ledger,
        cache=cache,
        service=SynonymService(words),
        options=options,
    )


async def connect_redis(config: Settings) -> redis.Redis | None:
    """Connect to Redis when configured; None selects the in-process backends."""
    if not config.redis.url:
        logger.warning(
            "redis.not_configured",
            extra={"mode": "in-memory quota and cache (per instance only)"},
        )
        return None

    client = redis.from_url(
        config.redis.url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=config.redis.socket_timeout_seconds,
        socket_connect_timeout=config.redis.socket_timeout_seconds,
    )
    try:
        await client.ping()
    except (RedisError, OSError) as exc:
        logger.error(
            "redis.unavailable",
            extra={
                "error_type": type(exc).__name__,
                "mode": "in-memory quota and cache (per instance only)",
            },
        )
        await client.aclose()
        return None

    logger.info("redis.connected")
    return client


async def build_container(config: Settings) -> ServiceContainer:
    """Construct every service handle from settings."""
    database = Database(
        config.db.url,
        pool_size=config.db.pool_size,
        max_overflow=config.db.max_overflow,
        echo=config.app.debug,
    )
    redis_client = await connect_redis(config)

    memory_store = InMemoryQuotaStore(window_seconds=config.quota.window_seconds)
    if redis_client is not None:
        quota_store: AbstractQuotaStore = RedisQuotaStore(
            redis_client, window_seconds=config.quota.window_seconds
        )
        cache_backend: AbstractResponseCache = RedisResponseCache(redis_client)
        quota_fallback: AbstractQuotaStore | None = memory_store
    else:
        quota_store = memory_store
        cache_backend = InMemoryResponseCache(max_entries=config.cache.max_entries)
        quota_fallback = None

    pipeline = build_pipeline(
        config,
        words=SqlWordRepository(database),
        api_keys=SqlApiKeyRepository(database),
        quota_store=quota_store,
        cache_backend=cache_backend,
        quota_fallback=quota_fallback,
    )

    logger.info(
        "services.ready",
        extra={
            "quota_backend": quota_store.name,
            "cache_backend": cache_backend.name,
            "quota_limit": config.quota.max_requests,
            "quota_window_s": config.quota.window_seconds,
        },
    )
    return ServiceContainer(pipeline=pipeline, database=database, redis_client=redis_client)
