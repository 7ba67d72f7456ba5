"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return the same JSON envelope:

    {"success": false, "error": <code>, "message": <text>, "meta": {...}}

Design:
- AppError subclasses -> their own HTTP status (400, 401, 404, 429, 500)
- Framework HTTPException (unknown route, wrong method) -> its status
- Unexpected Exception -> generic 500 without internal detail (safety net)
- All responses carry request_id in meta for log correlation
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.errors import AppError, QuotaExceededAppError
from app.core.logging import get_request_id
from app.schemas.synonyms import ErrorResponse
from app.utils.clock import format_local, utc_now

logger = logging.getLogger(__name__)

# Detail keys that describe the request rather than the error
_META_FIELDS = {"searched", "api_key_used"}


def _base_meta() -> dict[str, Any]:
    meta: dict[str, Any] = {
        "timestamp": format_local(utc_now(), settings.app.display_timezone),
        "powered_by": settings.app.api_name,
    }
    request_id = get_request_id()
    if request_id:
        meta["request_id"] = request_id
    return meta


def render_error(exc: AppError, *, meta: dict[str, Any] | None = None) -> JSONResponse:
    """Render an AppError as the standard error envelope.

    Args:
        exc: Domain error to render.
        meta: Extra request metadata (e.g. ``api_key_used``).

    Returns:
        JSONResponse with the error's status code and any error headers.
    """
    response_meta = _base_meta()
    extras: dict[str, Any] = {}

    for key, value in (exc.details or {}).items():
        if key in _META_FIELDS:
            response_meta[key] = value
        else:
            extras[key] = value
    if meta:
        response_meta.update(meta)

    body = ErrorResponse(error=exc.code, message=exc.message, meta=response_meta, **extras)
    headers = exc.headers if isinstance(exc, QuotaExceededAppError) else None

    return JSONResponse(
        status_code=exc.status_code,
        content=body.to_payload(),
        headers=headers or None,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors raised outside the search pipeline."""
    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "status_code": exc.status_code,
            "request_path": request.url.path,
        },
    )
    return render_error(exc)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Wrap framework HTTP errors (404 route, 405 method) in the envelope."""
    body = ErrorResponse(
        error="Not found" if exc.status_code == 404 else "HTTP error",
        message=str(exc.detail),
        meta=_base_meta(),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=body.to_payload(),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message; no exception text or stack trace reaches the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
        exc_info=exc,
    )

    body = ErrorResponse(
        error="Internal server error",
        message="A server error occurred.",
        meta=_base_meta(),
    )
    return JSONResponse(status_code=500, content=body.to_payload())


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Order matters: specific handlers registered before general fallback.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
