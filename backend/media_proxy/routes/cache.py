"""
Audiomosh Proxy — Cache Management Routes
==========================================

    GET    /api/cache/status  → size, every key, memory figures
    DELETE /api/cache/clear   → drop every entry

Neither route is rate limited. Clearing only affects this process.
"""

import logging

from fastapi import APIRouter, Depends

from media_proxy.dependencies import get_cache
from media_proxy.routes.health import memory_usage
from media_proxy.schemas.proxy import CacheClearResponse, CacheStatusResponse
from media_proxy.services.response_cache import ResponseCache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cache", tags=["Cache"])


@router.get("/status", response_model=CacheStatusResponse, summary="Cache contents")
async def cache_status(cache: ResponseCache = Depends(get_cache)) -> CacheStatusResponse:
    stats = cache.stats()
    return CacheStatusResponse(
        size=stats["size"],
        keys=stats["keys"],
        memory_usage=memory_usage(),
    )


@router.delete("/clear", response_model=CacheClearResponse, summary="Empty the cache")
async def cache_clear(cache: ResponseCache = Depends(get_cache)) -> CacheClearResponse:
    cleared = cache.clear()
    logger.info("Cache cleared: %d entries", cleared)
    return CacheClearResponse(message=f"Cache cleared: {cleared} entries")
