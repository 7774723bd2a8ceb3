"""
Audiomosh Proxy — Freesound Routes
===================================

    GET /api/freesound?url=<apiv2 path>&...   → upstream JSON (cached)
    GET /api/freesound/download/{sound_id}    → audio file (streamed)

Request translation:
    `url` is a path under https://freesound.org/apiv2/, usually with its own
    query string (e.g. "search/text/?query=drum"). Every other query
    parameter is re-encoded and appended, joined with "&" when `url` already
    has a "?" and with "?" otherwise:

        /api/freesound?url=search/text/?query=drum&page=1
          → https://freesound.org/apiv2/search/text/?query=drum&page=1

Credentials: "Authorization: Token <FREESOUND_API_KEY>".

Check order: missing `url` (400) before missing key (500); both before any
upstream call.
"""

import logging
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlencode

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

router = APIRouter(prefix="/api", tags=["Freesound"])

_error_responses = {
    400: {"description": "Missing url parameter", "model": ErrorResponse},
    429: {"description": "Rate limit exceeded"},
    500: {"description": "API key not configured or upstream unreachable", "model": ErrorResponse},
}


def build_search_url(base_url: str, url: str, extra_params: List[Tuple[str, str]]) -> str:
    """Upstream URL for a search/metadata call; see module docstring."""
    target = f"{base_url}/apiv2/{url}"
    if extra_params:
        separator = "&" if "?" in url else "?"
        target = f"{target}{separator}{urlencode(extra_params)}"
    return target


def build_download_url(base_url: str, sound_id: str) -> str:
    return f"{base_url}/apiv2/sounds/{sound_id}/download/"


def auth_headers(settings: Settings) -> Dict[str, str]:
    if not settings.freesound_api_key:
        raise ConfigurationError("Freesound API key not configured")
    return {"Authorization": f"Token {settings.freesound_api_key}"}


@router.get(
    "/freesound",
    responses=_error_responses,
    summary="Proxy a Freesound API call",
)
async def freesound_search(
    request: Request,
    url: Optional[str] = Query(
        default=None,
        description="Path under /apiv2/, e.g. 'search/text/?query=drum'",
    ),
    settings: Settings = Depends(get_settings),
    proxy: ProxyService = Depends(get_proxy_service),
) -> JSONResponse:
    if not url:
        raise ValidationError("Missing url parameter", field="url")
    headers = auth_headers(settings)

    extra_params = [(k, v) for k, v in request.query_params.multi_items() if k != "url"]
    target = build_search_url(settings.freesound_base_url, url, extra_params)
    logger.info("Proxying Freesound request: %s", target)

    body = await proxy.fetch_json(
        key=cache_key(request.method, request.url.path, request.url.query),
        url=target,
        headers=headers,
        label="Freesound API error",
        context={"url": target},
    )

    if isinstance(body, dict):
        found = body.get("count") or len(body.get("results") or []) or "unknown"
    else:
        found = "unknown"
    logger.info("Freesound proxy success: %s (%s results)", url, found)
    return JSONResponse(content=body)


@router.get(
    "/freesound/download/{sound_id}",
    responses={**_error_responses, 200: {"content": {"audio/mpeg": {}}}},
    response_class=StreamingResponse,
    summary="Stream a Freesound sound file",
)
async def freesound_download(
    sound_id: str,
    settings: Settings = Depends(get_settings),
    proxy: ProxyService = Depends(get_proxy_service),
) -> StreamingResponse:
    headers = auth_headers(settings)
    target = build_download_url(settings.freesound_base_url, sound_id)
    logger.info("Proxying Freesound download: %s", target)

    stream = await proxy.open_download(target, headers=headers, context={"soundId": sound_id})
    return download_response(stream, default_media_type="audio/mpeg")
