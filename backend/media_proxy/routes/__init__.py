"""
Audiomosh Proxy — API Routes Package
=====================================

Route Inventory:
    - health.py:     GET    /health
    - freesound.py:  GET    /api/freesound
                     GET    /api/freesound/download/{id}
    - pexels.py:     GET    /api/pexels
                     GET    /api/pexels/download
    - cache.py:      GET    /api/cache/status
                     DELETE /api/cache/clear

Routes stay thin: validate inputs, build the upstream URL and credential
headers, delegate to ProxyService, shape the response. Failures are raised
as exceptions and formatted by the handlers in main.py.
"""

# Returned in the body of every 404
AVAILABLE_ENDPOINTS = [
    "GET /health",
    "GET /api/freesound",
    "GET /api/pexels",
    "GET /api/freesound/download/:id",
    "GET /api/pexels/download",
    "GET /api/cache/status",
    "DELETE /api/cache/clear",
]
