"""OpenAPI customization utilities.

Enriches the generated schema with:
- Tags metadata
- Bearer and query-parameter API key security schemes, both optional
  (anonymous access is allowed under a quota)

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and security schemes.

    The search operation lists both key schemes plus an empty requirement,
    meaning "bearer OR query key OR nothing".
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "BearerApiKey",
            {
                "type": "http",
                "scheme": "bearer",
                "description": "API key sent as 'Authorization: Bearer <key>'.",
            },
        )
        security_schemes.setdefault(
            "QueryApiKey",
            {
                "type": "apiKey",
                "in": "query",
                "name": "key",
                "description": "API key sent as the 'key' query parameter. Do not combine with the header.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Synonyms",
                "description": "Synonym and antonym lookup.",
            },
            {
                "name": "Health",
                "description": "Liveness check and active backends.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        paths = schema.get("paths", {})
        search = paths.get("/api/synonyms", {}).get("get")
        if isinstance(search, dict):
            search["security"] = [{"BearerApiKey": []}, {"QueryApiKey": []}, {}]

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
