"""
Health API for the creditpath service.

Lightweight liveness endpoint without dependencies or secrets.
"""

import logging

from fastapi import APIRouter

from creditpath.core.config import settings

logger = logging.getLogger("creditpath")

root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    logger.info("healthz")
    return {"status": "ok", "billing_configured": bool(settings.BILLING_API_URL)}
