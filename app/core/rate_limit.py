"""Quota ledger for anonymous callers.

Strategy:
- Fixed window per identity, opened by the identity's first request and
  deleted ``window_seconds`` later (24 hours by default). Windows are not
  aligned to calendar days.
- Counters live in a shared store (Redis) so every instance enforces one
  limit. When that store fails, the ledger degrades to an in-process store
  with the same semantics and keeps serving; the limit is then enforced per
  instance only.
- Callers with a verified API key never reach the ledger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.adapters.rate_limit.base import AbstractQuotaStore, WindowHit
from app.core.errors import QuotaBackendError, QuotaExceededAppError
from app.core.identity import AnonymousIdentity, Identity, KeyedIdentity
from app.utils.clock import format_local, from_epoch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of counting one request.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window.
        count: Requests counted in the window, this one included.
        remaining: Requests left in the window (0 when blocked).
        reset_at: UNIX epoch seconds when the window expires.
        retry_after_seconds: Advertised wait when blocked (the window length).
        backend: Name of the store that counted the request.
    """

    allowed: bool
    limit: int
    count: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None
    backend: str


class QuotaLedger:
    """Admits or denies requests against a per-identity window budget."""

    def __init__(
        self,
        store: AbstractQuotaStore,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "ratelimit",
        fallback: AbstractQuotaStore | None = None,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._store = store
        self._fallback = fallback
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._key_prefix = key_prefix

    @property
    def backend_name(self) -> str:
        return self._store.name

    def ledger_key(self, identity: Identity) -> str:
        if isinstance(identity, KeyedIdentity):
            return f"unlimited:{identity.key_id}"
        return f"{self._key_prefix}:{identity.address}"

    async def _increment(self, key: str) -> tuple[WindowHit, str]:
        try:
            return await self._store.increment(key), self._store.name
        except QuotaBackendError as exc:
            if self._fallback is None:
                raise
            logger.warning(
                "quota.backend_unavailable",
                extra={
                    "backend": self._store.name,
                    "fallback": self._fallback.name,
                    "error_msg": str(exc),
                },
            )
            return await self._fallback.increment(key), self._fallback.name

    async def admit(self, identity: AnonymousIdentity) -> QuotaDecision:
        """Count one request for ``identity`` and decide whether it may proceed."""
        key = self.ledger_key(identity)
        hit, backend = await self._increment(key)

        allowed = hit.count <= self.max_requests
        decision = QuotaDecision(
            allowed=allowed,
            limit=self.max_requests,
            count=hit.count,
            remaining=max(0, self.max_requests - hit.count),
            reset_at=int(hit.reset_at),
            retry_after_seconds=None if allowed else self.window_seconds,
            backend=backend,
        )

        if not allowed:
            logger.warning(
                "quota.denied",
                extra={
                    "client_ip": identity.address,
                    "count": hit.count,
                    "limit": self.max_requests,
                    "window_s": self.window_seconds,
                    "quota_backend": backend,
                },
            )
        return decision

    async def refund(self, identity: AnonymousIdentity) -> None:
        """Compensate one previously admitted request (best effort)."""
        key = self.ledger_key(identity)
        for store in (self._store, self._fallback):
            if store is None:
                continue
            try:
                await store.decrement(key)
                return
            except QuotaBackendError as exc:
                logger.warning(
                    "quota.refund_failed",
                    extra={"backend": store.name, "error_msg": str(exc)},
                )

    async def reset(self, identity: Identity) -> None:
        """Delete the window of ``identity`` in every reachable store."""
        key = self.ledger_key(identity)
        for store in (self._store, self._fallback):
            if store is None:
                continue
            try:
                await store.reset(key)
            except QuotaBackendError as exc:
                logger.warning(
                    "quota.reset_failed",
                    extra={"backend": store.name, "error_msg": str(exc)},
                )


def build_quota_exceeded_error(
    decision: QuotaDecision,
    *,
    window_seconds: int,
    tz_name: str,
    contact: str,
    include_headers: bool = True,
) -> QuotaExceededAppError:
    """Build the 429 error for a denied decision."""
    retry_after = decision.retry_after_seconds or window_seconds
    hours = window_seconds / 3600
    window_label = "daily" if window_seconds == 86400 else f"{hours:g}-hour"

    headers: dict[str, str] = {}
    if include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["RateLimit-Limit"] = str(decision.limit)
        headers["RateLimit-Remaining"] = str(decision.remaining)
        headers["RateLimit-Reset"] = str(decision.reset_at)

    return QuotaExceededAppError(
        code=f"{window_label.capitalize()} limit exceeded",
        message=(
            f"Your {window_label} limit of {decision.limit} requests "
            "for this IP has been reached."
        ),
        details={
            "limit": decision.limit,
            "resetTime": format_local(from_epoch(decision.reset_at), tz_name),
            "suggestion": "You can get unlimited access by obtaining an API key.",
            "getKey": f"Contact: {contact}",
            "retryAfter": retry_after,
        },
        headers=headers,
    )
