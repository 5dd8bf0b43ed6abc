"""Tests for the upstream LLM API client."""

import json

import httpx
import pytest
from pydantic import ValidationError

from relay.streaming.models import UpstreamRequest
from relay.upstream import (
    UpstreamClient,
    UpstreamClientError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
)

ENDPOINT = "http://upstream.test/v1/chat/completions"


def make_client(handler, token="secret") -> tuple[UpstreamClient, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return UpstreamClient(http_client, endpoint=ENDPOINT, token=token), http_client


@pytest.fixture
def upstream_request():
    """Create a test upstream request."""
    return UpstreamRequest(prompt="hello-world", model="test-model")


class TestUpstreamRequest:
    """Tests for the UpstreamRequest model."""

    def test_payload(self, upstream_request):
        """Test the JSON body sent upstream."""
        assert upstream_request.to_payload() == {
            "messages": [{"role": "user", "content": "hello-world"}],
            "stream": True,
            "model": "test-model",
        }

    def test_immutable(self, upstream_request):
        """Test that the request cannot be modified."""
        with pytest.raises(ValidationError):
            upstream_request.prompt = "other"

    def test_requires_prompt(self):
        """Test that an empty prompt is rejected."""
        with pytest.raises(ValueError):
            UpstreamRequest(prompt="", model="m")


class TestOpenStream:
    """Tests for UpstreamClient.open_stream."""

    async def test_sends_payload_and_credentials(self, upstream_request):
        """Test the request method, body and headers."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"data: [DONE]\n")

        client, http_client = make_client(handler)
        async with http_client:
            response = await client.open_stream(upstream_request)
            await response.aclose()

        (request,) = seen
        assert request.method == "POST"
        assert str(request.url) == ENDPOINT
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == upstream_request.to_payload()

    async def test_no_token_no_authorization_header(self, upstream_request):
        """Test that an empty token sends no Authorization header."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"data: [DONE]\n")

        client, http_client = make_client(handler, token="")
        async with http_client:
            response = await client.open_stream(upstream_request)
            await response.aclose()

        assert "Authorization" not in seen[0].headers

    async def test_body_left_unread(self, upstream_request):
        """Test that the returned response is still streamable."""

        async def body():
            yield b"data: a\n"
            yield b"data: b\n"

        client, http_client = make_client(lambda request: httpx.Response(200, content=body()))
        async with http_client:
            response = await client.open_stream(upstream_request)
            chunks = [chunk async for chunk in response.aiter_bytes()]
            await response.aclose()

        assert b"".join(chunks) == b"data: a\ndata: b\n"

    async def test_rejection_carries_status_and_body(self, upstream_request):
        """Test that non-success statuses raise with status and body."""
        client, http_client = make_client(
            lambda request: httpx.Response(429, text="rate limited")
        )
        async with http_client:
            with pytest.raises(UpstreamRejectedError) as exc_info:
                await client.open_stream(upstream_request)

        error = exc_info.value
        assert error.status_code == 429
        assert error.body == "rate limited"
        assert str(error) == "LLM API Error: 429 - rate limited"

    async def test_no_content_is_unavailable(self, upstream_request):
        """Test that a 204 response counts as having no body."""
        client, http_client = make_client(lambda request: httpx.Response(204))
        async with http_client:
            with pytest.raises(UpstreamUnavailableError) as exc_info:
                await client.open_stream(upstream_request)

        assert str(exc_info.value) == "Failed to get response stream from LLM API"
        assert exc_info.value.status_code == 500

    async def test_empty_body_is_unavailable(self, upstream_request):
        """Test that an explicit zero content length counts as no body."""
        client, http_client = make_client(
            lambda request: httpx.Response(200, headers={"Content-Length": "0"})
        )
        async with http_client:
            with pytest.raises(UpstreamUnavailableError):
                await client.open_stream(upstream_request)

    async def test_connection_error_wrapped(self, upstream_request):
        """Test that transport errors become UpstreamClientError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client, http_client = make_client(handler)
        async with http_client:
            with pytest.raises(UpstreamClientError) as exc_info:
                await client.open_stream(upstream_request)

        assert "Request failed" in str(exc_info.value)
        assert exc_info.value.status_code is None

    async def test_timeout_wrapped(self, upstream_request):
        """Test that timeouts become UpstreamClientError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        client, http_client = make_client(handler)
        async with http_client:
            with pytest.raises(UpstreamClientError) as exc_info:
                await client.open_stream(upstream_request)

        assert "timed out" in str(exc_info.value)
