"""
Audiomosh Proxy — Download Response Helper
===========================================

Turns an UpstreamStream into a StreamingResponse for both download routes.

Content-Type, Content-Length, Content-Disposition and Content-Encoding are
copied verbatim from upstream (Content-Type falls back to the route's
default). Content-Encoding matters only when upstream ignored our request for
identity encoding: the relayed bytes are still encoded, and so is the length.

Bytes are relayed chunk by chunk; if the browser goes away the generator is
closed, which releases the upstream connection and stops the read loop.
"""

from typing import Dict

from starlette.background import BackgroundTask
from starlette.responses import StreamingResponse

from media_proxy.services.upstream_client import UpstreamStream


def download_response(stream: UpstreamStream, default_media_type: str) -> StreamingResponse:
    headers: Dict[str, str] = {"Content-Type": stream.content_type or default_media_type}
    if stream.content_length:
        headers["Content-Length"] = stream.content_length
    if stream.content_disposition:
        headers["Content-Disposition"] = stream.content_disposition
    if stream.content_encoding and stream.content_encoding.lower() != "identity":
        headers["Content-Encoding"] = stream.content_encoding

    return StreamingResponse(
        stream.iter_bytes(),
        status_code=200,
        headers=headers,
        # No-op once iter_bytes() has finished; covers a body never started.
        background=BackgroundTask(stream.aclose),
    )
