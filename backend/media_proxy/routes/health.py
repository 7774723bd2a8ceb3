"""
Audiomosh Proxy — Health Check Route
=====================================

What:  GET /health, a read-only snapshot of the running process.
Why:   Lets an operator see at once whether keys are configured, how big the
       cache has grown and how many clients the limiter is tracking.
How:   Reads the shared components' stats; never mutates them and never
       calls an upstream (health must not spend API quota).

Always 200 while the process can answer at all. Missing API keys show up
as `false` under `config` rather than as an unhealthy status.
"""

import gc
import logging
import resource
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from media_proxy.config import Settings
from media_proxy.dependencies import get_cache, get_rate_limiter, get_settings
from media_proxy.schemas.proxy import (
    CacheSnapshot,
    ConfigSnapshot,
    HealthResponse,
    RateLimitSnapshot,
)
from media_proxy.services.rate_limiter import RateLimiter
from media_proxy.services.response_cache import ResponseCache

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Number of cache keys echoed by /health; /api/cache/status lists them all
HEALTH_KEY_SAMPLE = 5


def memory_usage() -> Dict[str, Any]:
    """
    Process memory figures from the standard library.

    maxRss is the peak resident set size in bytes (ru_maxrss is KiB on Linux,
    bytes on macOS). gcObjects counts objects tracked by the collector.
    """
    usage = resource.getrusage(resource.RUSAGE_SELF)
    scale = 1 if sys.platform == "darwin" else 1024
    return {
        "maxRss": usage.ru_maxrss * scale,
        "gcObjects": len(gc.get_objects()),
        "gcCounts": list(gc.get_count()),
    }


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health and introspection",
)
async def health_check(
    request: Request,
    settings: Settings = Depends(get_settings),
    cache: ResponseCache = Depends(get_cache),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> HealthResponse:
    limiter_stats = rate_limiter.stats()
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
        memory=memory_usage(),
        cache=CacheSnapshot(**cache.stats(sample=HEALTH_KEY_SAMPLE)),
        rate_limit=RateLimitSnapshot(
            active_clients=limiter_stats["active_clients"],
            total_requests=limiter_stats["total_requests"],
        ),
        config=ConfigSnapshot(
            freesound_api_key=bool(settings.freesound_api_key),
            pexels_api_key=bool(settings.pexels_api_key),
            port=settings.port,
        ),
    )
