"""
Audiomosh Proxy — Pexels Routes
================================

    GET /api/pexels?url=<videos path>          → upstream JSON (cached)
    GET /api/pexels/download?url=<absolute>    → video file (streamed)

Search: `url` is appended to https://api.pexels.com/videos/ and sent with
"Authorization: <PEXELS_API_KEY>". Other query parameters are not forwarded;
callers put the whole upstream query inside `url`.

Download: `url` is a video file link taken from a search result, fetched
without credentials. Before anything is fetched the link must be http(s)
and its host must be on PEXELS_DOWNLOAD_HOSTS (or a subdomain of an entry).
Every redirect target is held to the same check before it is followed.
Without that check the route would fetch and relay any URL on the internet.
"""

import logging
from typing import List, Optional
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from starlette.responses import StreamingResponse

from media_proxy.config import Settings
from media_proxy.dependencies import get_proxy_service, get_settings
from media_proxy.exceptions import ConfigurationError, ValidationError
from media_proxy.responses import download_response
from media_proxy.schemas.proxy import ErrorResponse
from media_proxy.services.proxy_service import ProxyService
from media_proxy.services.response_cache import cache_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Pexels"])

_error_responses = {
    400: {"description": "Missing or disallowed url parameter", "model": ErrorResponse},
    429: {"description": "Rate limit exceeded"},
    500: {"description": "API key not configured or upstream unreachable", "model": ErrorResponse},
}

ANY_HOST = "*"


def build_search_url(base_url: str, url: str) -> str:
    return f"{base_url}/videos/{url}"


def validate_download_target(url: str, allowed_hosts: List[str]) -> str:
    """
    Check an absolute download link against the host allow-list.

    Returns:
        The URL unchanged when it may be fetched.

    Raises:
        ValidationError: not an absolute http(s) URL, or host not allowed.
    """
    try:
        parts = urlsplit(url)
        host = (parts.hostname or "").lower()
    except ValueError:
        raise ValidationError("Invalid url parameter", field="url", context={"url": url})

    if parts.scheme not in ("http", "https") or not host:
        raise ValidationError(
            "url must be an absolute http(s) URL", field="url", context={"url": url}
        )

    if ANY_HOST in allowed_hosts:
        return url
    if any(host == allowed or host.endswith("." + allowed) for allowed in allowed_hosts):
        return url

    logger.warning("Rejected Pexels download from non-allowed host %s", host)
    raise ValidationError(
        f"Download host '{host}' is not allowed", field="url", context={"url": url}
    )


@router.get(
    "/pexels",
    responses=_error_responses,
    summary="Proxy a Pexels video API call",
)
async def pexels_search(
    request: Request,
    url: Optional[str] = Query(
        default=None,
        description="Path under /videos/, e.g. 'search?query=ocean&per_page=10'",
    ),
    settings: Settings = Depends(get_settings),
    proxy: ProxyService = Depends(get_proxy_service),
) -> JSONResponse:
    if not url:
        raise ValidationError("Missing url parameter", field="url")
    if not settings.pexels_api_key:
        raise ConfigurationError("Pexels API key not configured")

    target = build_search_url(settings.pexels_base_url, url)
    logger.info("Proxying Pexels request: %s", target)

    body = await proxy.fetch_json(
        key=cache_key(request.method, request.url.path, request.url.query),
        url=target,
        headers={"Authorization": settings.pexels_api_key},
        label="Pexels API error",
        context={"url": target},
    )

    if isinstance(body, dict):
        found = len(body.get("videos") or []) or body.get("total_results") or "unknown"
    else:
        found = "unknown"
    logger.info("Pexels proxy success: %s (%s videos)", url, found)
    return JSONResponse(content=body)


@router.get(
    "/pexels/download",
    responses={**_error_responses, 200: {"content": {"video/mp4": {}}}},
    response_class=StreamingResponse,
    summary="Stream a Pexels video file",
)
async def pexels_download(
    url: Optional[str] = Query(default=None, description="Absolute video file URL"),
    settings: Settings = Depends(get_settings),
    proxy: ProxyService = Depends(get_proxy_service),
) -> StreamingResponse:
    if not url:
        raise ValidationError("Missing url parameter", field="url")
    allowed_hosts = settings.pexels_download_hosts_list
    target = validate_download_target(url, allowed_hosts)
    logger.info("Proxying Pexels video download: %s", target)

    stream = await proxy.open_download(
        target,
        headers={},
        context={"url": target},
        redirect_check=lambda location: validate_download_target(location, allowed_hosts),
    )
    return download_response(stream, default_media_type="video/mp4")
