"""Pytest configuration helpers.

Provides a scripted fake provider served through ``httpx.MockTransport``
plus the shared settings, clock and gateway fixtures.
"""
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from app.config import Settings
from app.services.gateway import MediaGateway

VIDEO_URL = "https://provider.test/video/generate"
IMAGE_URL = "https://provider.test/image/generate"
STATUS_URL = "https://provider.test/video/status/{jobId}"


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class FakeProvider:
    """Scripted provider. Each route replays its replies in order; the last repeats.

    A reply is ``(status, body)``, an exception instance to raise, or a
    callable ``(request) -> Response`` (may be async).
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, method, url, *replies):
        self.routes[(method, url)] = list(replies)
        return self

    def calls(self, method, url):
        return [r for r in self.requests if r.method == method and str(r.url) == url]

    def handler(self, request):
        self.requests.append(request)
        replies = self.routes.get((request.method, str(request.url)))
        if not replies:
            return httpx.Response(404, text=f"no route for {request.method} {request.url}")
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        status, body = reply
        if isinstance(body, bytes):
            return httpx.Response(status, content=body)
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        PROVIDER_API_KEY="test-key",
        PROVIDER_VIDEO_API_URL=VIDEO_URL,
        PROVIDER_IMAGE_API_URL=IMAGE_URL,
        PROVIDER_VIDEO_STATUS_URL=STATUS_URL,
        OUT_DIR=str(tmp_path / "out"),
        POLL_INTERVAL_MS=10,
        MAX_POLL_MS=60000,
    )


@pytest.fixture
async def http_client(provider):
    client = provider.client()
    yield client
    await client.aclose()


@pytest.fixture
async def gateway(settings, http_client, clock):
    gw = MediaGateway(settings, http_client=http_client, clock=clock)
    yield gw
    await gw.aclose()
