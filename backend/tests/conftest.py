"""
Audiomosh Proxy — Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the whole suite.
Why:   Tests never reach Freesound or Pexels. Every outbound call goes through
       an httpx.MockTransport whose handler records the request, so tests
       can count upstream invocations exactly.
How:   Each test builds its own app via `app_factory` (fresh cache, fresh
       limiter, fake clock) and talks to it through httpx's ASGITransport.

Fixture Hierarchy:
    clock          FakeClock shared by the cache and the limiter
    upstream       UpstreamStub: records requests, returns `responder(request)`
    app_factory    create_app(...) with the stub and clock wired in
    open_client    AsyncClient bound to an app
    test_client    AsyncClient for an app with default test settings
"""

import os

# Set BEFORE importing media_proxy so the module-level settings singleton
# never picks up real keys from the developer's environment.
os.environ["FREESOUND_API_KEY"] = "test-freesound-key"
os.environ["PEXELS_API_KEY"] = "test-pexels-key"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Callable, List  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from media_proxy.config import Settings  # noqa: E402
from media_proxy.main import create_app  # noqa: E402
from media_proxy.services.rate_limiter import RateLimiter  # noqa: E402
from media_proxy.services.response_cache import ResponseCache  # noqa: E402
from media_proxy.services.upstream_client import UpstreamClient  # noqa: E402


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class UpstreamStub:
    """
    httpx.MockTransport handler standing in for every upstream host.

    Usage:
        upstream.responder = lambda request: httpx.Response(200, json={...})
        ...
        assert upstream.call_count == 1
        assert str(upstream.requests[0].url) == "https://freesound.org/..."
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(200, json={})
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def call_count(self) -> int:
        return len(self.requests)


def make_settings(**overrides) -> Settings:
    values = {
        "freesound_api_key": "test-freesound-key",
        "pexels_api_key": "test-pexels-key",
        "environment": "test",
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def upstream():
    return UpstreamStub()


@pytest.fixture
def app_factory(clock, upstream):
    """
    Build an app around the shared stub and clock.

    Keyword arguments override Settings fields, e.g.
    app_factory(rate_limit_requests=2, pexels_api_key="").
    """

    def factory(**overrides):
        settings = make_settings(**overrides)
        return create_app(
            settings=settings,
            upstream=UpstreamClient(
                user_agent=settings.user_agent,
                transport=httpx.MockTransport(upstream),
            ),
            cache=ResponseCache(
                ttl_seconds=settings.cache_ttl,
                max_entries=settings.cache_max_entries,
                clock=clock,
            ),
            rate_limiter=RateLimiter(
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window,
                sweep_every=settings.rate_limit_sweep_every,
                clock=clock,
            ),
        )

    return factory


@pytest.fixture
def open_client():
    """Returns a function giving an AsyncClient (use with `async with`) for an app."""

    def opener(app) -> AsyncClient:
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return opener


@pytest_asyncio.fixture
async def test_client(app_factory, open_client):
    """
    AsyncClient for an app with default test settings.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    async with open_client(app_factory()) as client:
        yield client
