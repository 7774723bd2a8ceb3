"""
Audiomosh Proxy — Rate Limiting Middleware
===========================================

What:  Applies the per-client RateLimiter in front of the proxy routes.
Why:   Rejected requests must never reach a handler, so they cost no
       upstream quota and no cache lookups.
How:   For the four proxy routes, derive the client identity, call
       `app.state.rate_limiter.admit()`, and either continue or answer 429
       with a Retry-After header.

Client identity:
    The connection's peer address. Behind a shared reverse proxy that would
    collapse every user into one identity; set TRUST_FORWARDED_FOR=true in
    that deployment to use the first X-Forwarded-For hop instead.

Not limited: /health, /api/cache/*, and unmatched paths (even under
/api/freesound or /api/pexels).
"""

import logging
import re

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from media_proxy.exceptions import RateLimitExceededError
from media_proxy.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

# The four proxy routes; anything else under /api/freesound or /api/pexels is a 404
LIMITED_ROUTES = (
    re.compile(r"/api/freesound"),
    re.compile(r"/api/freesound/download/[^/]+"),
    re.compile(r"/api/pexels"),
    re.compile(r"/api/pexels/download"),
)


def is_rate_limited_path(path: str) -> bool:
    return any(route.fullmatch(path) for route in LIMITED_ROUTES)


def client_identity(request: Request, trust_forwarded_for: bool = False) -> str:
    """Identity used to bucket a caller; "unknown" when there is no peer."""
    if trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Admission control for the proxy routes.

    The limiter and settings are read from `request.app.state` on every call,
    so each app instance enforces its own counters.

    Response on rate limit:
        HTTP 429, Retry-After header, body
        {"error": "Rate limit exceeded", "retryAfter": <seconds>}
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not is_rate_limited_path(request.url.path):
            return await call_next(request)

        state = request.app.state
        client_id = client_identity(request, state.settings.trust_forwarded_for)
        decision = state.rate_limiter.admit(client_id)

        if not decision.allowed:
            # Runs outside the app's exception handlers, so render here
            exc = RateLimitExceededError(retry_after=decision.retry_after)
            return JSONResponse(
                status_code=exc.status_code,
                content={
                    "error": exc.message,
                    "retryAfter": exc.retry_after,
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(exc.retry_after)},
            )

        return await call_next(request)
