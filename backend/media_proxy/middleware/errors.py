"""
Audiomosh Proxy — Unhandled Error Middleware
=============================================

What:  Turns any exception no handler claimed into the JSON 500 body.
Why:   Starlette runs `Exception` handlers in ServerErrorMiddleware, outside
       CORSMiddleware; the browser would see a 500 without
       Access-Control-Allow-Origin and could not read it. Catching here,
       inside CORS, keeps the header on every response.
How:   Wraps call_next; the same renderer backs the app-level `Exception`
       handler for failures raised by the outer middleware themselves.

Streamed downloads that fail after headers went out cannot be turned into
a JSON body; the connection is simply closed.
"""

import logging
import traceback
from typing import Any, Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from media_proxy.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


def with_stack(request: Request, body: Dict[str, Any], exc: BaseException) -> Dict[str, Any]:
    """Attach the formatted traceback when ENVIRONMENT=development."""
    if request.app.state.settings.is_development:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def unhandled_error_response(request: Request, exc: Exception) -> JSONResponse:
    rid = request_id_var.get("")
    logger.error("[%s] Unhandled error: %s", rid, str(exc), exc_info=exc)
    body = {
        "error": "Internal server error",
        "details": str(exc),
        "request_id": rid,
    }
    return JSONResponse(status_code=500, content=with_stack(request, body, exc))


class UnhandledErrorMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return unhandled_error_response(request, exc)
