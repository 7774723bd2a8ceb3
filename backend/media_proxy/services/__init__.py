# Services package init
"""
Audiomosh Proxy — Services Layer
=================================

What:  Process-wide state and outbound I/O, kept out of the route handlers.

Service Inventory:
    - RateLimiter:    fixed window request counter per client identity
    - ResponseCache:  TTL store for successful upstream JSON bodies
    - UpstreamClient: shared httpx client (JSON calls + streamed downloads)
    - ProxyService:   cache → upstream → cache orchestration for the routes

One instance of each is created by create_app() and stored on app.state;
routes receive them through FastAPI dependencies (see dependencies.py).
"""
