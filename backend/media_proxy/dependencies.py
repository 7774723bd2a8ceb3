"""
Audiomosh Proxy — FastAPI Dependencies
=======================================

What:  Accessors that hand route handlers the shared components.
Why:   The cache, limiter and HTTP client live on `app.state` (created by
       create_app), so every app instance, each test's included, owns its
       own state instead of sharing module globals.
How:   `Depends(get_proxy_service)` etc. in route signatures.
"""

from fastapi import Request

from media_proxy.config import Settings
from media_proxy.services.proxy_service import ProxyService
from media_proxy.services.rate_limiter import RateLimiter
from media_proxy.services.response_cache import ResponseCache


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache(request: Request) -> ResponseCache:
    return request.app.state.cache


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_proxy_service(request: Request) -> ProxyService:
    return request.app.state.proxy_service
