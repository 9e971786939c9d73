from __future__ import annotations

from fastapi import APIRouter

from app.core.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Used by load balancers and monitoring systems to determine service health.

    Returns:
        dict: ``{"status": "ok", "environment": <APP_ENV>}``.
    """

    return {"status": "ok", "environment": settings.app_env}
