"""Search request pipeline.

Runs the search endpoint as an ordered list of stages:

    resolve identity -> check quota -> cache lookup -> compute -> cache write

Each stage returns ``Continue``, ``Reject(error)`` or ``ShortCircuit(response)``.
The driver stops at the first non-``Continue`` result, so ordering and early
exits are explicit instead of hidden in middleware chaining.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from fastapi import Request

from app.core.auth import CredentialVerifier
from app.core.errors import AppError, BackendAppError
from app.core.identity import (
    AnonymousIdentity,
    Identity,
    KeyedIdentity,
    extract_api_key,
    resolve_client_address,
    strip_query_key,
)
from app.core.rate_limit import QuotaDecision, QuotaLedger, build_quota_exceeded_error
from app.schemas.synonyms import ResponseMeta, SearchResponse
from app.services.response_cache import ResponseCache
from app.services.synonym_service import SynonymService
from app.utils.clock import format_local, utc_now
from app.utils.text_normalizer import normalize_term

logger = logging.getLogger(__name__)

KEYED_NOTE = "Unlimited access provided with API key."


@dataclass(frozen=True)
class Continue:
    """Proceed to the next stage."""


@dataclass(frozen=True)
class Reject:
    """Stop with an error response."""

    error: AppError


@dataclass(frozen=True)
class ShortCircuit:
    """Stop with a finished success response."""

    response: SearchResponse


StageResult = Continue | Reject | ShortCircuit
CONTINUE = Continue()


@dataclass
class SearchContext:
    """Per-request state threaded through the stages."""

    request: Request
    searched: str | None
    term: str
    client_address: str
    identity: Identity | None = None
    quota: QuotaDecision | None = None
    response: SearchResponse | None = None
    cached: bool = field(default=False)

    @property
    def api_key_used(self) -> bool:
        return isinstance(self.identity, KeyedIdentity)


@dataclass(frozen=True)
class PipelineOptions:
    """Policy knobs the stages read (mirrors the quota/app settings)."""

    quota_enabled: bool = True
    refund_on_server_error: bool = True
    include_quota_headers: bool = True
    display_timezone: str = "Europe/Istanbul"
    powered_by: str = "IELTS Synonyms API"
    contact: str = ""


@dataclass
class PipelineOutcome:
    """Finished pipeline run: either a response or an error."""

    context: SearchContext
    response: SearchResponse | None = None
    error: AppError | None = None


Stage = Callable[[SearchContext], Awaitable[StageResult]]


class SearchPipeline:
    """Composes identity, quota, cache and lookup for one search request."""

    def __init__(
        self,
        *,
        verifier: CredentialVerifier,
        ledger: QuotaLedger,
        cache: ResponseCache,
        service: SynonymService,
        options: PipelineOptions | None = None,
    ) -> None:
        self._verifier = verifier
        self._ledger = ledger
        self._cache = cache
        self._service = service
        self._options = options or PipelineOptions()
        self._stages: list[Stage] = [
            self.resolve_identity,
            self.check_quota,
            self.lookup_cache,
            self.compute,
            self.store_result,
        ]

    @property
    def ledger(self) -> QuotaLedger:
        return self._ledger

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    async def run(self, request: Request, search: str | None) -> PipelineOutcome:
        """Drive one request through every stage until a stage stops it."""
        searched = search.strip() if search is not None else None
        ctx = SearchContext(
            request=request,
            searched=searched or None,
            term=normalize_term(searched),
            client_address=resolve_client_address(request),
        )

        for stage in self._stages:
            result = await stage(ctx)
            if isinstance(result, Reject):
                return PipelineOutcome(context=ctx, error=result.error)
            if isinstance(result, ShortCircuit):
                return PipelineOutcome(context=ctx, response=result.response)

        return PipelineOutcome(context=ctx, response=ctx.response)

    async def resolve_identity(self, ctx: SearchContext) -> StageResult:
        try:
            candidate = extract_api_key(ctx.request)
        except AppError as exc:
            logger.warning(
                "identity.rejected",
                extra={"error_code": exc.code, "client_ip": ctx.client_address},
            )
            return Reject(exc)

        if candidate is None:
            ctx.identity = AnonymousIdentity(address=ctx.client_address)
            return CONTINUE

        try:
            ctx.identity = await self._verifier.authenticate(candidate)
        except AppError as exc:
            return Reject(exc)

        if candidate.source == "query":
            strip_query_key(ctx.request)
        return CONTINUE

    async def check_quota(self, ctx: SearchContext) -> StageResult:
        if not self._options.quota_enabled or not isinstance(ctx.identity, AnonymousIdentity):
            return CONTINUE

        decision = await self._ledger.admit(ctx.identity)
        ctx.quota = decision
        if decision.allowed:
            return CONTINUE

        return Reject(
            build_quota_exceeded_error(
                decision,
                window_seconds=self._ledger.window_seconds,
                tz_name=self._options.display_timezone,
                contact=self._options.contact,
                include_headers=self._options.include_quota_headers,
            )
        )

    async def lookup_cache(self, ctx: SearchContext) -> StageResult:
        if not ctx.term:
            return CONTINUE

        cached = await self._cache.get(ctx.term)
        if cached is None:
            return CONTINUE

        ctx.cached = True
        meta = cached.meta.model_copy(
            update={
                "searched": ctx.searched,
                "api_key_used": ctx.api_key_used,
                "note": KEYED_NOTE if ctx.api_key_used else None,
                "from_cache": True,
            }
        )
        response = cached.model_copy(update={"meta": meta})
        self._log_completed(ctx, response)
        return ShortCircuit(response)

    async def compute(self, ctx: SearchContext) -> StageResult:
        try:
            result = await self._service.lookup(ctx.term, searched=ctx.searched)
        except BackendAppError as exc:
            await self._refund(ctx)
            return Reject(exc)
        except AppError as exc:
            return Reject(exc)

        ctx.response = SearchResponse(
            data=result.data,
            meta=ResponseMeta(
                searched=ctx.searched,
                found_in=result.found_in,
                timestamp=format_local(utc_now(), self._options.display_timezone),
                powered_by=self._options.powered_by,
                api_key_used=ctx.api_key_used,
                from_cache=False,
                note=KEYED_NOTE if ctx.api_key_used else None,
            ),
        )
        self._log_completed(ctx, ctx.response)
        return CONTINUE

    async def store_result(self, ctx: SearchContext) -> StageResult:
        # Random picks are non-deterministic per call and never cached
        if ctx.term and ctx.response is not None:
            await self._cache.put(ctx.term, ctx.response)
        return CONTINUE

    async def _refund(self, ctx: SearchContext) -> None:
        if not self._options.refund_on_server_error:
            return
        if ctx.quota is None or not ctx.quota.allowed:
            return
        if isinstance(ctx.identity, AnonymousIdentity):
            await self._ledger.refund(ctx.identity)

    def _log_completed(self, ctx: SearchContext, response: SearchResponse) -> None:
        logger.info(
            "search.completed",
            extra={
                "searched": ctx.searched or "random",
                "found_in": response.meta.found_in,
                "word": response.data.word,
                "client_ip": ctx.client_address,
                "api_key_used": ctx.api_key_used,
                "from_cache": response.meta.from_cache,
            },
        )
