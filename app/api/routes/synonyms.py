from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.container import ServiceContainer
from app.core.exception_handlers import render_error

router = APIRouter(tags=["Synonyms"])

SEARCH_PATH = "/api/synonyms"


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


@router.options(SEARCH_PATH, include_in_schema=False)
async def synonyms_preflight() -> Response:
    """CORS preflight: always 200 with an empty body."""
    return Response(status_code=200)


@router.get(SEARCH_PATH)
async def search_synonyms(
    request: Request,
    search: str | None = Query(
        None,
        description="Word to look up. Omit it to get a random word.",
    ),
) -> JSONResponse:
    """Look up synonyms and antonyms of a word.

    Callers may present an API key either as ``Authorization: Bearer <key>``
    or as a single ``key`` query parameter (never both). Keyed callers have
    unlimited access; anonymous callers share a per-IP quota.

    Returns:
        JSONResponse: Success envelope, or an error envelope with status
            400, 401, 404, 429 or 500.
    """
    container = get_container(request)
    outcome = await container.pipeline.run(request, search)

    if outcome.error is not None:
        return render_error(
            outcome.error,
            meta={"api_key_used": outcome.context.api_key_used},
        )

    return JSONResponse(status_code=200, content=outcome.response.to_payload())


@router.get("/api", include_in_schema=False)
@router.get("/api/")
async def api_index() -> dict:
    """Describe the API: endpoint, examples and access policy."""
    quota = settings.quota
    return {
        "api": settings.app.api_name,
        "version": settings.app.api_version,
        "endpoint": SEARCH_PATH,
        "examples": [
            f"GET {SEARCH_PATH}",
            f"GET {SEARCH_PATH}?search=fast",
            f"GET {SEARCH_PATH}?search=quick&key=YOUR_KEY",
            f"GET {SEARCH_PATH}?search=quick  (Authorization: Bearer YOUR_KEY)",
        ],
        "rate_limit": f"{quota.max_requests} requests / {quota.window_seconds} seconds (without key)",
        "unlimited": "Use ?key=... or an Authorization: Bearer header",
        "contact": settings.app.contact,
    }
