"""
Audiomosh Proxy — FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, shared state, route mounting,
       error formatting and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   uvicorn (`uvicorn media_proxy.main:app`) and the test suite, which
       builds one app per test with a mocked upstream transport.

Application Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                    FastAPI App                       │
    │  Middleware: CORS → ID → Logging → Errors → RateLimit│
    │                                                      │
    │  Routes: /health  /api/freesound*  /api/pexels*      │
    │          /api/cache/status  /api/cache/clear         │
    │                                                      │
    │  app.state: settings, cache, rate_limiter,           │
    │             upstream, proxy_service, started_at      │
    └──────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, report missing API keys, log the routes
    Shutdown: close the shared upstream HTTP client. In-flight requests are
              not drained; uvicorn stops accepting connections on
              SIGTERM/SIGINT and exits.
"""

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from media_proxy import __version__
from media_proxy.config import Settings, settings as default_settings
from media_proxy.exceptions import (
    ConfigurationError,
    MediaProxyError,
    NotFoundError,
    TransportError,
    UpstreamError,
    ValidationError,
)
from media_proxy.middleware.errors import (
    UnhandledErrorMiddleware,
    unhandled_error_response,
    with_stack,
)
from media_proxy.middleware.logging import RequestLoggingMiddleware
from media_proxy.middleware.rate_limit import RateLimitMiddleware
from media_proxy.middleware.request_id import RequestIDMiddleware, request_id_var
from media_proxy.routes import AVAILABLE_ENDPOINTS, freesound, health, pexels
from media_proxy.routes import cache as cache_routes
from media_proxy.services.proxy_service import ProxyService
from media_proxy.services.rate_limiter import RateLimiter
from media_proxy.services.response_cache import ResponseCache
from media_proxy.services.upstream_client import UpstreamClient

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure the root logger once, at startup.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s, to stdout so
    container runtimes capture it.
    """
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Our access log replaces uvicorn's; httpx logs every request at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(config.log_level)
    logger.info("=" * 60)
    logger.info("Audiomosh proxy %s starting up (environment=%s)", __version__, config.environment)

    # Missing keys are reported, not fatal: /health must keep answering
    try:
        config.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))

    logger.info("Freesound API: %s", "configured" if config.freesound_api_key else "MISSING")
    logger.info("Pexels API: %s", "configured" if config.pexels_api_key else "MISSING")
    logger.info(
        "Cache TTL %.0fs (max %d entries); rate limit %d requests / %.0fs",
        config.cache_ttl,
        config.cache_max_entries,
        config.rate_limit_requests,
        config.rate_limit_window,
    )
    for endpoint in AVAILABLE_ENDPOINTS:
        logger.info("Route: %s", endpoint)
    logger.info("Server ready at http://%s:%d", config.host, config.port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Audiomosh proxy shutting down...")
    await app.state.upstream.aclose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(request: Request, exc: MediaProxyError, **fields: Any) -> Dict[str, Any]:
    """`error` first, then handler-specific fields, the context, the request ID."""
    body: Dict[str, Any] = {"error": exc.message}
    body.update(fields)
    body.update(exc.context)
    body["request_id"] = request_id_var.get("")
    return body


def _not_found_response(request: Request, exc: NotFoundError) -> JSONResponse:
    logger.info("404 Not Found: %s %s", exc.method, exc.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc, availableEndpoints=AVAILABLE_ENDPOINTS),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and JSON bodies.

    Handler hierarchy:
        ValidationError         → 400
        RequestValidationError  → 400 (FastAPI's own parameter parsing)
        ConfigurationError      → 500
        UpstreamError           → upstream status, mirrored
        TransportError          → 500 (+ stack in development)
        unmatched route / wrong method → 404 + route list
        Exception (fallback)    → 500 (+ stack in development)

    No failure escapes as a non-JSON response.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=400, content=_error_body(request, exc))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request parameters",
                "details": jsonable_encoder(exc.errors()),
                "request_id": request_id_var.get(""),
            },
        )

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(request: Request, exc: ConfigurationError):
        logger.error("[%s] Configuration error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=500, content=_error_body(request, exc))

    @app.exception_handler(UpstreamError)
    async def handle_upstream_error(request: Request, exc: UpstreamError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc, details=exc.reason),
        )

    @app.exception_handler(TransportError)
    async def handle_transport_error(request: Request, exc: TransportError):
        body = _error_body(request, exc, details=exc.details)
        return JSONResponse(status_code=500, content=with_stack(request, body, exc))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        # Unknown path (404) and known path with another method (405) are
        # both "no such endpoint" for callers
        if exc.status_code in (404, 405):
            return _not_found_response(
                request, NotFoundError(method=request.method, path=request.url.path)
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "request_id": request_id_var.get("")},
            headers=getattr(exc, "headers", None),
        )

    # Route failures are caught by UnhandledErrorMiddleware (inside CORS);
    # this covers failures in the outer middleware
    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        return unhandled_error_response(request, exc)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    upstream: Optional[UpstreamClient] = None,
    cache: Optional[ResponseCache] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Every shared component can be injected (tests pass an UpstreamClient over
    httpx.MockTransport, or a cache with a fake clock); otherwise each is
    built from `settings`.
    """
    config = settings or default_settings

    app = FastAPI(
        title="Audiomosh Proxy",
        description=(
            "CORS-enabled proxy for the Freesound and Pexels APIs. Injects "
            "server-side API keys, caches search results and streams downloads."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # ── Shared state ──────────────────────────────────────────────────────
    app.state.settings = config
    app.state.started_at = time.monotonic()
    app.state.cache = cache or ResponseCache(
        ttl_seconds=config.cache_ttl,
        max_entries=config.cache_max_entries,
    )
    app.state.rate_limiter = rate_limiter or RateLimiter(
        max_requests=config.rate_limit_requests,
        window_seconds=config.rate_limit_window,
        sweep_every=config.rate_limit_sweep_every,
    )
    app.state.upstream = upstream or UpstreamClient(user_agent=config.user_agent)
    app.state.proxy_service = ProxyService(app.state.upstream, app.state.cache, config)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added = first to execute, so the runtime order is
    # CORS → RequestID → Logging → UnhandledError → RateLimit
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(UnhandledErrorMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "Retry-After",
            "Content-Length",
            "Content-Disposition",
        ],
    )

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(freesound.router)
    app.include_router(pexels.router)
    app.include_router(cache_routes.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `media_proxy.main:app` to be importable
app = create_app()
