"""OpenAPI customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- API Key security scheme (``X-API-Key``) applied to admin operations only

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Auth",
        "description": (
            "Registration, login and password management. Every endpoint is "
            "rate limited per client and answers 429 when the quota is exhausted."
        ),
    },
    {
        "name": "Admin",
        "description": "Operational endpoints. Require the X-API-Key header.",
    },
    {
        "name": "Health",
        "description": "Liveness and readiness checks.",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and security.

    - Injects components.securitySchemes for API Key auth (header ``X-API-Key``)
    - Marks operations under ``/v1/admin`` as requiring the API key
    - Documents the 429 response on throttled auth operations
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Provide your admin API key via the X-API-Key header.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        paths = schema.get("paths", {})
        for path, methods in paths.items():
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                if path.startswith("/v1/admin"):
                    method_obj["security"] = [{"ApiKeyAuth": []}]
                elif path.startswith("/v1/auth"):
                    method_obj.setdefault("responses", {}).setdefault(
                        "429",
                        {"description": "Too many attempts from this client; see Retry-After."},
                    )

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
