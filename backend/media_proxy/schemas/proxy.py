"""
Audiomosh Proxy — Pydantic Response Schemas
============================================

What:  Response models for the proxy's own endpoints (health, cache, errors).
Why:   The browser client reads these fields by their camelCase names; the
       models document that contract in OpenAPI and keep Python-side names
       snake_case via aliases.

Proxied search results are NOT modelled: upstream JSON is passed through
as-is.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

_camel = {"populate_by_name": True}


class CacheSnapshot(BaseModel):
    size: int = Field(description="Number of stored entries, fresh or stale")
    keys: List[str] = Field(description="Stored cache keys")


class RateLimitSnapshot(BaseModel):
    active_clients: int = Field(alias="activeClients", description="Tracked client identities")
    total_requests: int = Field(
        alias="totalRequests", description="Sum of request counts across tracked clients"
    )

    model_config = _camel


class ConfigSnapshot(BaseModel):
    """Which credentials are present; never the credentials themselves."""

    freesound_api_key: bool = Field(alias="freesoundApiKey")
    pexels_api_key: bool = Field(alias="pexelsApiKey")
    port: int

    model_config = _camel


class HealthResponse(BaseModel):
    """
    What:  Process snapshot returned by GET /health.
    Who:   Uptime monitors and the browser client's "is the proxy up" check.
    """

    status: str = Field(default="ok")
    timestamp: datetime = Field(description="Server time (UTC)")
    uptime: float = Field(description="Seconds since the process started serving")
    memory: Dict[str, Any] = Field(description="Process memory figures")
    cache: CacheSnapshot = Field(description="Cache size and the first five keys")
    rate_limit: RateLimitSnapshot = Field(alias="rateLimit")
    config: ConfigSnapshot

    model_config = _camel


class CacheStatusResponse(BaseModel):
    size: int
    keys: List[str] = Field(description="Every stored key, fresh or stale")
    memory_usage: Dict[str, Any] = Field(alias="memoryUsage")

    model_config = _camel


class CacheClearResponse(BaseModel):
    message: str = Field(description="e.g. 'Cache cleared: 3 entries'")


class ErrorResponse(BaseModel):
    """
    What:  Shape shared by every error body.

    Only `error` is guaranteed. Upstream failures add `details` (the upstream
    reason phrase) and the target (`url` or `soundId`); `stack` appears only
    when ENVIRONMENT=development.
    """

    error: str = Field(description="Human-readable error, e.g. 'Pexels API error: 404'")
    details: Optional[str] = Field(default=None)
    request_id: Optional[str] = Field(default=None)

    model_config = {"extra": "allow"}
