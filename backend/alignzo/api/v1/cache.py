"""Cache inspection and flush endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter

from alignzo.api.deps import Cache
from alignzo.api.v1.auth import CurrentUser

router = APIRouter()
logger = structlog.get_logger()


@router.get("/stats")
async def cache_stats(current_user: CurrentUser, cache: Cache) -> dict[str, Any]:
    return {"success": True, "data": cache.stats()}


@router.delete("")
async def flush_cache(current_user: CurrentUser, cache: Cache) -> dict[str, Any]:
    """Drop every entry."""
    count = cache.clear()
    logger.info("cache_flushed", user_email=current_user.email, count=count)
    return {"success": True, "flushed": count}


@router.delete("/{key:path}")
async def flush_cache_key(key: str, current_user: CurrentUser, cache: Cache) -> dict[str, Any]:
    """Drop one entry, e.g. ``project-categories:<project id>``."""
    removed = cache.invalidate(key)
    logger.info("cache_key_flushed", user_email=current_user.email, key=key, removed=removed)
    return {"success": True, "flushed": int(removed)}
