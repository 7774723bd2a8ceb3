"""
Audiomosh Proxy — Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions for every way a proxied call can fail.
Why:   Route handlers stay linear (validate, call, return); each failure is
       raised once and turned into a JSON body by a global handler.
How:   Each exception carries a message, an HTTP status and a context dict
       whose keys are merged into the error body (e.g. `url`, `soundId`).
Who:   Raised by routes and services; caught by handlers in main.py.

Exception Hierarchy:
    MediaProxyError (base)
    ├── ValidationError      → 400 Bad Request (required input missing/invalid)
    ├── ConfigurationError   → 500 (API key for the provider not set)
    ├── UpstreamError        → mirrored upstream status (non-2xx response)
    ├── TransportError       → 500 (timeout, DNS, connection reset, bad JSON)
    ├── NotFoundError        → 404 (no route matched)
    └── RateLimitExceededError → 429 (client window used up)

Every error body has an `error` field, so clients can rely on that plus the
status code alone.
"""

from typing import Any, Dict, Optional


class MediaProxyError(Exception):
    """
    Base exception for all proxy errors.

    Attributes:
        message:      Value of the `error` field in the response body
        status_code:  HTTP status returned to the caller
        context:      Extra fields merged into the response body
    """

    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(MediaProxyError):
    """
    Raised when a required request input is missing or unusable.

    HTTP:  400. Raised before any upstream call, so no provider quota is used.
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.field = field


class ConfigurationError(MediaProxyError):
    """Raised when the API key needed for a provider is not configured."""

    status_code = 500


class UpstreamError(MediaProxyError):
    """
    Raised when an upstream API answered with a non-2xx status.

    What:    The status code is mirrored to our caller; the upstream reason
             phrase goes into `details`. The upstream body is never decoded.
    HTTP:    Same as upstream (404 → 404, 503 → 503).

    The `label` names the failing operation ("Freesound API error",
    "Download error"); the message is always "<label>: <status>".
    """

    def __init__(
        self,
        status_code: int,
        reason: str = "",
        label: str = "Upstream API error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=f"{label}: {status_code}", context=context)
        self.status_code = status_code
        self.reason = reason
        self.label = label


class TransportError(MediaProxyError):
    """
    Raised when the upstream could not be reached or returned garbage.

    When:  Connect/read timeout, DNS failure, connection reset, invalid URL,
           or a 2xx body that is not JSON.
    HTTP:  500. The underlying error text is returned in `details`.
    """

    status_code = 500

    def __init__(
        self,
        details: str,
        label: str = "Proxy error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=label, context=context)
        self.details = details
        self.label = label


class NotFoundError(MediaProxyError):
    """No route matches the request method and path; rendered with the route list."""

    status_code = 404

    def __init__(
        self,
        method: str = "",
        path: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message="Endpoint not found", context=context)
        self.method = method
        self.path = path


class RateLimitExceededError(MediaProxyError):
    """
    Raised when a client has used up its request window.

    HTTP:  429 with a Retry-After header; `retryAfter` in the body is the same
           whole number of seconds.
    """

    status_code = 429

    def __init__(self, retry_after: int, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Rate limit exceeded", context=context)
        self.retry_after = retry_after
