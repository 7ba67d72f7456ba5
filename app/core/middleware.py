"""HTTP middleware for request correlation and transport policy.

- ``request_id_middleware`` accepts an incoming X-Request-ID header or
  generates a UUID, stores it in contextvars for the log filters, echoes it
  back and reports the request duration.
- ``https_redirect_middleware`` answers 301 with the https URL when a proxy
  reports the original request came over plain http.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response
from fastapi.responses import RedirectResponse

from app.core.config import settings
from app.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a correlation id and duration header to every response.

    Side Effects:
        - Sets request_id in contextvars (accessible via get_request_id())
        - Clears request_id from contextvars after the request completes
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def https_redirect_middleware(request: Request, call_next) -> Response:
    """Redirect proxied plain-http requests to https.

    Only acts when ``X-Forwarded-Proto`` is present; direct connections
    (local development, health probes) pass through untouched.
    """

    forwarded_proto = request.headers.get("x-forwarded-proto")
    if forwarded_proto is not None and forwarded_proto.lower() != "https":
        target = request.url.replace(scheme="https")
        host = request.headers.get("host")
        if host:
            target = target.replace(netloc=host)
        return RedirectResponse(str(target), status_code=301)

    return await call_next(request)
