"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- The webhook signature security scheme (``X-Signature``), required only on
  webhook paths

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from authorkit.core.webhook_signature import SIGNATURE_HEADER

TAGS_METADATA = [
    {"name": "License", "description": "Licence validation, activation and plugin updates."},
    {"name": "Webhooks", "description": "Signed events from the payments provider."},
    {"name": "Bookshelf", "description": "Shared catalogue of books synced from author sites."},
    {"name": "Email", "description": "E-mail capture from plugin onboarding."},
    {"name": "Downloads", "description": "Token-protected plugin archives."},
    {"name": "Health", "description": "Liveness checks."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    - Injects components.securitySchemes for the webhook HMAC header
    - Marks webhook operations as requiring it; all other operations are
      public (licence keys travel in the request body)
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "WebhookSignature",
            {
                "type": "apiKey",
                "in": "header",
                "name": SIGNATURE_HEADER,
                "description": "Hex HMAC-SHA256 of the raw request body under the webhook secret.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if path.startswith("/webhooks/"):
                for method_obj in methods.values():
                    if isinstance(method_obj, dict):
                        method_obj["security"] = [{"WebhookSignature": []}]

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
