"""OpenAPI customization utilities.

Enriches the generated schema with:
- A bearer security scheme, applied to the push endpoint only
- Tags metadata

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {
        "name": "Notifications",
        "description": "Push messages for a token and read them back.",
    },
    {
        "name": "Health",
        "description": "Liveness check, including a store round-trip.",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "BearerToken",
            {
                "type": "http",
                "scheme": "bearer",
                "description": "Opaque token; any non-empty value addresses its own notification list.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        # Only the write path reads the Authorization header
        for path, methods in schema.get("paths", {}).items():
            if path.endswith("/notify"):
                post = methods.get("post")
                if isinstance(post, dict):
                    post["security"] = [{"BearerToken": []}]

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
