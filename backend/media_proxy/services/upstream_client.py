"""
Audiomosh Proxy — Upstream HTTP Client
=======================================

What:  Outbound HTTP calls to Freesound, Pexels and Pexels' file hosts.
Why:   One place that owns the connection pool, the User-Agent, timeouts and
       the translation of httpx failures into proxy exceptions.
How:   A single shared `httpx.AsyncClient`. JSON calls read the whole body;
       download calls open a streamed response and hand it back unread.
Who:   ProxyService. Routes never touch httpx directly.

Failure Translation:
    non-2xx response          → UpstreamError(status, reason phrase)
                                (body is not read or decoded)
    timeout / network / URL   → TransportError(str(error))
    JSON call over its budget → TransportError (total deadline, body included)
    2xx but body is not JSON  → TransportError

    Nothing is retried. Each failure is reported once.

Credentials:
    The caller passes the Authorization header in; the client does not know
    which provider it is talking to.
"""

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Callable, Dict, Optional

import httpx

from media_proxy.exceptions import TransportError, UpstreamError

logger = logging.getLogger(__name__)

# Same hop limit httpx applies when it follows redirects itself
MAX_REDIRECTS = 20


def _reject_constant(name: str) -> Any:
    """NaN and Infinity are not JSON, and JSONResponse refuses to render them."""
    raise ValueError(f"non-standard JSON constant {name}")


class UpstreamStream:
    """
    A streamed upstream response whose body has not been read yet.

    Headers are copied verbatim from upstream. The body can be iterated once;
    the underlying connection is released when iteration finishes, fails, or
    the iterator is closed early (client disconnect).
    """

    def __init__(self, response: httpx.Response):
        self._response = response
        self.status_code = response.status_code
        self.content_type: Optional[str] = response.headers.get("content-type")
        self.content_length: Optional[str] = response.headers.get("content-length")
        self.content_disposition: Optional[str] = response.headers.get("content-disposition")
        # Raw bytes are relayed, so any encoding upstream applied must go along
        self.content_encoding: Optional[str] = response.headers.get("content-encoding")

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """Yield body chunks exactly as received, without buffering the file."""
        relayed = 0
        try:
            async for chunk in self._response.aiter_raw():
                relayed += len(chunk)
                yield chunk
        except httpx.HTTPError as e:
            logger.warning(
                "Upstream stream from %s broke after %d bytes: %s",
                self._response.url,
                relayed,
                str(e),
            )
            raise
        finally:
            await self._response.aclose()

    async def aclose(self) -> None:
        await self._response.aclose()

    @property
    def is_closed(self) -> bool:
        return self._response.is_closed


class UpstreamClient:
    """
    Thin async wrapper around a shared httpx.AsyncClient.

    Args:
        user_agent: Sent on every outbound request.
        transport:  Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        user_agent: str = "audiomosh-proxy/1.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.user_agent = user_agent
        self._client = httpx.AsyncClient(
            transport=transport,
            headers={"User-Agent": user_agent},
            follow_redirects=True,
        )

    async def get_json(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
    ) -> Any:
        """
        GET `url` and return the decoded JSON body.

        `timeout` bounds the whole call, connect through last body byte.
        httpx's own timeout only bounds each phase, so an upstream trickling
        one byte per read would otherwise never expire.

        Raises:
            UpstreamError:  upstream answered non-2xx
            TransportError: request never completed in time, or body is not JSON
        """
        start_time = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._client.get(url, headers=headers, timeout=timeout), timeout
            )
        except asyncio.TimeoutError as e:
            raise self._transport_error(
                url, f"Upstream did not respond within {timeout:g}s", start_time
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise self._transport_error(url, str(e) or type(e).__name__, start_time) from e

        if not response.is_success:
            raise UpstreamError(status_code=response.status_code, reason=response.reason_phrase)

        try:
            body = response.json(parse_constant=_reject_constant)
        except ValueError as e:
            raise TransportError(f"Invalid JSON from upstream: {e}") from e

        logger.debug(
            "GET %s → %d in %.0fms",
            url,
            response.status_code,
            (time.perf_counter() - start_time) * 1000,
        )
        return body

    async def open_stream(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 120.0,
        redirect_check: Optional[Callable[[str], Any]] = None,
    ) -> UpstreamStream:
        """
        GET `url` and return its body as an unread UpstreamStream.

        `Accept-Encoding: identity` is requested so the raw bytes relayed are
        the file itself and upstream Content-Length stays accurate. Unlike
        get_json, `timeout` applies per phase: a large file may take longer
        than `timeout` in total as long as bytes keep arriving.

        With `redirect_check`, redirects are followed one hop at a time and
        each target URL is passed to it first; whatever it raises propagates
        and the redirect is not fetched.

        Raises:
            UpstreamError:  upstream answered non-2xx (connection released)
            TransportError: request never completed, or too many redirects
        """
        request_headers = {"Accept-Encoding": "identity"}
        request_headers.update(headers or {})

        start_time = time.perf_counter()
        try:
            request = self._client.build_request(
                "GET", url, headers=request_headers, timeout=timeout
            )
            response = await self._client.send(
                request, stream=True, follow_redirects=redirect_check is None
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise self._transport_error(url, str(e) or type(e).__name__, start_time) from e

        hops = 0
        while redirect_check is not None and response.next_request is not None:
            next_request = response.next_request
            await response.aclose()
            hops += 1
            if hops > MAX_REDIRECTS:
                raise self._transport_error(url, "Too many redirects", start_time)
            redirect_check(str(next_request.url))
            try:
                response = await self._client.send(next_request, stream=True, follow_redirects=False)
            except httpx.HTTPError as e:
                raise self._transport_error(url, str(e) or type(e).__name__, start_time) from e

        if not response.is_success:
            await response.aclose()
            raise UpstreamError(status_code=response.status_code, reason=response.reason_phrase)

        return UpstreamStream(response)

    def _transport_error(self, url: str, details: str, start_time: float) -> TransportError:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.warning(
            "Upstream call to %s failed after %.0fms: %s",
            url,
            duration_ms,
            details,
        )
        return TransportError(details)

    async def aclose(self) -> None:
        """Close the connection pool (called from the app lifespan)."""
        await self._client.aclose()
