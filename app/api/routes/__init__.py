from __future__ import annotations

from app.api.routes.health import router as health_router
from app.api.routes.synonyms import router as synonyms_router

__all__ = ["health_router", "synonyms_router"]
