"""Liveness and readiness probes. Both are unauthenticated."""

from typing import Any

import structlog
from fastapi import APIRouter
from sqlalchemy import text

from alignzo.api.deps import Cache
from alignzo.config import get_settings
from alignzo.db import DBSession

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check(db: DBSession, cache: Cache) -> dict[str, Any]:
    """Ready when the database answers; cache size is reported for information."""
    checks: dict[str, str] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        logger.warning("readiness_database_failed", error=str(e))
        checks["database"] = f"unhealthy: {e}"

    checks["cache"] = "healthy"

    return {
        "status": "healthy" if checks["database"] == "healthy" else "unhealthy",
        "version": settings.app_version,
        "checks": checks,
        "cache_entries": cache.stats()["size"],
    }
