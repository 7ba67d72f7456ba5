from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint.

    Reports liveness together with the quota and cache backends in use, so
    a degraded (per-instance) deployment is visible to monitoring.

    Returns:
        dict: ``status`` plus the active backend names.
    """

    container = request.app.state.container
    return {
        "status": "ok",
        "quota_backend": container.ledger.backend_name,
        "cache_backend": container.cache.backend_name,
    }
