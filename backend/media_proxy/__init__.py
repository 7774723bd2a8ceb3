"""
Audiomosh Proxy — Application Package Initializer
==================================================

What: Marks the `media_proxy` directory as a Python package.
Why:  Enables module imports like `from media_proxy.config import settings`.
Who:  Used by uvicorn (`uvicorn media_proxy.main:app`) and pytest.

Architecture Note:
    The proxy is split into thin layers:

    ┌─────────────────────────────────────┐
    │   Middleware (CORS, IDs, limits)    │  ← applied to every request
    ├─────────────────────────────────────┤
    │         Routes (API Layer)          │  ← validation, URL building
    ├─────────────────────────────────────┤
    │   Services (cache, limiter, HTTP)   │  ← shared process state + I/O
    └─────────────────────────────────────┘

    Upstream payloads (Freesound, Pexels) are treated as opaque JSON or bytes.
    Nothing is persisted; a restart starts with an empty cache and no counters.
"""

__version__ = "1.0.0"
