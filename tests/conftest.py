"""Shared fixtures for hookcast tests."""
import httpx
import pytest

from hookcast.dispatch.poster import HttpPoster
from hookcast.registry.topics import TopicRegistry


@pytest.fixture
def registry():
    return TopicRegistry()


@pytest.fixture
def sent():
    """Requests seen by the mock transport, in order."""
    return []


@pytest.fixture
def echo_handler(sent):
    """Answers 200 with the request body echoed back; /fail answers 500."""

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        if request.url.path == "/fail":
            return httpx.Response(500, text="boom")
        return httpx.Response(200, content=request.content)

    return handler


@pytest.fixture
def make_poster(echo_handler):
    def factory(handler=None, **kwargs) -> HttpPoster:
        transport = httpx.MockTransport(handler or echo_handler)
        return HttpPoster(client=httpx.AsyncClient(transport=transport), **kwargs)

    return factory
