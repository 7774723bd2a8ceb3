# Middleware package init
"""
Audiomosh Proxy — Middleware Package
=====================================

Middleware Chain (order matters!):
    Request → [CORS] → [Request ID] → [Logging] → [Unhandled Error]
            → [Rate Limit] → Route Handler

    1. CORS outermost: every response, including a 429 or a 500, carries
       Access-Control-Allow-Origin so the browser can read it
    2. Request ID: correlation ID for everything below
    3. Logging: records the final status, rejections and crashes included
    4. Unhandled Error: any exception no handler claimed → JSON 500
    5. Rate Limit: last gate before the proxy route handlers
"""
