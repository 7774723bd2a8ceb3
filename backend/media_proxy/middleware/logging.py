"""
Audiomosh Proxy — Request Logging Middleware
=============================================

What:  One access log line per request: method, path, status, duration.
Why:   Shows at a glance which upstream calls are slow or failing, and which
       clients are hitting the rate limit.
How:   Measures time around call_next; the level follows the status class
       (5xx → ERROR, 429 and other 4xx → WARNING, else INFO).

For streamed downloads the duration covers time-to-headers only; the body
is still being relayed when the line is written, so the line carries the
announced Content-Length instead.

What we DON'T log: query strings (search terms and download URLs belong to
the user) and any Authorization header.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from media_proxy.middleware.rate_limit import client_identity
from media_proxy.middleware.request_id import request_id_var

logger = logging.getLogger("media_proxy.access")

# Polled by monitors every few seconds
QUIET_PATHS = frozenset({"/health"})


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log keyed by request ID and the same client identity the limiter uses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        client = client_identity(request, request.app.state.settings.trust_forwarded_for)
        rid = request_id_var.get("")
        status = response.status_code
        size = response.headers.get("content-length", "-")

        logger.log(
            level_for_status(status),
            "%s %s %d %.1fms %sB [%s] from %s",
            request.method,
            path,
            status,
            elapsed_ms,
            size,
            rid,
            client,
            extra={
                "request_id": rid,
                "status": status,
                "duration_ms": round(elapsed_ms, 2),
                "client": client,
            },
        )
        return response
