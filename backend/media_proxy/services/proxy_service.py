"""
Audiomosh Proxy — Proxy Service
================================

What:  Orchestrates one proxied call: cache lookup → upstream → cache store.
Why:   Keeps route handlers thin (input validation and URL building only)
       and keeps caching an explicit step instead of a side effect of
       sending the response.
Who:   Called by the Freesound and Pexels route handlers.

JSON flow (search routes):
    1. cache.get(key) → hit: return the stored body, no upstream call
    2. upstream.get_json(...) → failure: re-raise with the route's label
    3. cache.put(key, body), then return body for the route to serialize

Download flow:
    upstream.open_stream(...) → UpstreamStream handed back unread.
    Downloads and every error are never cached.
"""

import logging
from typing import Any, Callable, Dict, Optional

from media_proxy.config import Settings
from media_proxy.exceptions import TransportError, UpstreamError
from media_proxy.services.response_cache import ResponseCache
from media_proxy.services.upstream_client import UpstreamClient, UpstreamStream

logger = logging.getLogger(__name__)


class ProxyService:
    """Cache-aware front for UpstreamClient, shared by all proxy routes."""

    def __init__(self, upstream: UpstreamClient, cache: ResponseCache, settings: Settings):
        self.upstream = upstream
        self.cache = cache
        self.settings = settings

    async def fetch_json(
        self,
        key: str,
        url: str,
        headers: Dict[str, str],
        label: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Return the JSON body for `url`, from cache when fresh.

        Args:
            key:     Cache key of the inbound request.
            url:     Fully built upstream URL.
            headers: Credential headers for this provider.
            label:   Prefix for error messages, e.g. "Freesound API error".
            context: Extra fields for error bodies (e.g. the upstream url).

        Raises:
            UpstreamError:  mirrored non-2xx status, message "<label>: <status>"
            TransportError: network failure or undecodable body
        """
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit: %s", key)
            return cached

        try:
            body = await self.upstream.get_json(
                url, headers=headers, timeout=self.settings.metadata_timeout
            )
        except UpstreamError as e:
            logger.error("%s: %d %s (%s)", label, e.status_code, e.reason, url)
            raise UpstreamError(
                status_code=e.status_code, reason=e.reason, label=label, context=context
            ) from e
        except TransportError as e:
            logger.error("Proxy error for %s: %s", url, e.details)
            raise TransportError(e.details, label="Proxy error", context=context) from e

        self.cache.put(key, body)
        return body

    async def open_download(
        self,
        url: str,
        headers: Dict[str, str],
        context: Optional[Dict[str, Any]] = None,
        redirect_check: Optional[Callable[[str], Any]] = None,
    ) -> UpstreamStream:
        """
        Open a streamed download of `url`.

        `redirect_check` vets every redirect target before it is fetched.

        Raises:
            UpstreamError:  mirrored status, message "Download error: <status>"
            TransportError: message "Download proxy error"
        """
        try:
            stream = await self.upstream.open_stream(
                url,
                headers=headers,
                timeout=self.settings.download_timeout,
                redirect_check=redirect_check,
            )
        except UpstreamError as e:
            logger.error("Download error: %d %s (%s)", e.status_code, e.reason, url)
            raise UpstreamError(
                status_code=e.status_code, reason=e.reason, label="Download error", context=context
            ) from e
        except TransportError as e:
            logger.error("Download proxy error for %s: %s", url, e.details)
            raise TransportError(e.details, label="Download proxy error", context=context) from e

        logger.info(
            "Download opened: %s (%s bytes, %s)",
            url,
            stream.content_length or "unknown",
            stream.content_type or "no content-type",
        )
        return stream
