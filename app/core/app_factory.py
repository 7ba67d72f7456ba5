from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction (lifespan, middleware, handlers, routers) so
tests can build an app around their own service container.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api.routes import health_router, synonyms_router
from app.core.config import settings
from app.core.container import ServiceContainer, build_container
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import https_redirect_middleware, request_id_middleware
from app.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        container: Pre-built services. When omitted, services are built from
            settings at startup and closed at shutdown.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if container is not None:
            app.state.container = container
            yield
            return

        app.state.container = await build_container(settings)
        try:
            yield
        finally:
            await app.state.container.aclose()
            logger.info("services.closed")

    app = FastAPI(
        title=settings.app.api_name,
        description=(
            "Synonym and antonym lookup. Anonymous callers get "
            f"{settings.quota.max_requests} requests per "
            f"{settings.quota.window_seconds // 3600} hours per IP; "
            "callers with an API key have unlimited access."
        ),
        version=settings.app.api_version,
        contact={"name": settings.app.api_name, "email": settings.app.contact},
        lifespan=lifespan,
    )

    # Containers passed in by the caller are usable before startup runs
    if container is not None:
        app.state.container = container

    # Middleware (last registered runs first)
    app.middleware("http")(request_id_middleware)
    if settings.app.force_https:
        app.middleware("http")(https_redirect_middleware)

    setup_exception_handlers(app)

    app.include_router(synonyms_router)
    app.include_router(health_router)

    # Front-end bundle is mounted last so API routes take precedence
    if settings.app.static_dir and Path(settings.app.static_dir).is_dir():
        app.mount("/", StaticFiles(directory=settings.app.static_dir, html=True), name="static")

    apply_openapi_customizations(app)

    return app
