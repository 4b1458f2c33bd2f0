"""Unit tests for the upstream chat-completion client."""

from __future__ import annotations

import httpx
import pytest

from chat_relay.config import RelaySettings
from chat_relay.errors import (
    UpstreamRequestError,
    UpstreamTimeoutError,
    UpstreamTransportError,
)
from chat_relay.upstream import MAX_ERROR_BODY, UpstreamClient


class TestBuildPayload:
    """Tests for the outbound request body."""

    def test_payload(self) -> None:
        client = UpstreamClient(RelaySettings(api_key="k", model="deepseek-reasoner"))
        assert client.build_payload("hi") == {
            "model": "deepseek-reasoner",
            "messages": [{"role": "user", "content": "hi"}],
            "stream": True,
        }


class TestOpenStream:
    """Tests for UpstreamClient.open_stream."""

    @pytest.mark.asyncio
    async def test_yields_body_chunks(self, make_upstream, stream) -> None:
        upstream = make_upstream(
            lambda request: httpx.Response(200, content=stream(b"data: a\n\n", b"data: b\n\n"))
        )

        async with upstream.open_stream("hi") as chunks:
            received = [chunk async for chunk in chunks]

        assert b"".join(received) == b"data: a\n\ndata: b\n\n"

    @pytest.mark.asyncio
    async def test_sends_stream_headers(self, make_upstream, settings, stream) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, content=stream())

        async with make_upstream(handler).open_stream("hi"):
            pass

        assert captured[0].headers["Accept"] == "text/event-stream"
        assert captured[0].headers["Authorization"] == f"Bearer {settings.api_key}"
        assert captured[0].headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_error_status_raises_with_body(self, make_upstream) -> None:
        upstream = make_upstream(lambda request: httpx.Response(429, text="rate limited"))

        with pytest.raises(UpstreamRequestError) as exc_info:
            async with upstream.open_stream("hi"):
                pytest.fail("stream should not open")

        error = exc_info.value
        assert error.upstream_status == 429
        assert error.reason == "Too Many Requests"
        assert error.body == "rate limited"
        assert error.message == "API Error: 429 Too Many Requests"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [302, 307])
    async def test_redirect_status_raises(self, make_upstream, status: int) -> None:
        """Redirects are not followed and do not open the stream."""
        upstream = make_upstream(
            lambda request: httpx.Response(
                status, headers={"Location": "https://elsewhere.test/"}, text="moved"
            )
        )

        with pytest.raises(UpstreamRequestError) as exc_info:
            async with upstream.open_stream("hi"):
                pytest.fail("stream should not open")

        assert exc_info.value.upstream_status == status
        assert exc_info.value.body == "moved"

    @pytest.mark.asyncio
    async def test_error_body_truncated(self, make_upstream) -> None:
        upstream = make_upstream(lambda request: httpx.Response(500, text="x" * 10_000))

        with pytest.raises(UpstreamRequestError) as exc_info:
            async with upstream.open_stream("hi"):
                pass

        assert len(exc_info.value.body) == MAX_ERROR_BODY

    @pytest.mark.asyncio
    async def test_connect_error(self, make_upstream) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        with pytest.raises(UpstreamTransportError, match="Failed to reach"):
            async with make_upstream(handler).open_stream("hi"):
                pass

    @pytest.mark.asyncio
    async def test_connect_timeout(self, make_upstream) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("slow")

        with pytest.raises(UpstreamTimeoutError):
            async with make_upstream(handler).open_stream("hi"):
                pass

    @pytest.mark.asyncio
    async def test_mid_stream_error(self, make_upstream, stream) -> None:
        upstream = make_upstream(
            lambda request: httpx.Response(
                200, content=stream(b"data: a\n\n", error=httpx.RemoteProtocolError("eof"))
            )
        )

        received: list[bytes] = []
        with pytest.raises(UpstreamTransportError) as exc_info:
            async with upstream.open_stream("hi") as chunks:
                async for chunk in chunks:
                    received.append(chunk)

        assert received == [b"data: a\n\n"]
        assert not isinstance(exc_info.value, UpstreamTimeoutError)


class TestClientOwnership:
    """Tests for aclose."""

    @pytest.mark.asyncio
    async def test_lazy_client_is_closed(self) -> None:
        upstream = UpstreamClient(RelaySettings(api_key="k", idle_timeout=12.0))
        client = upstream._ensure_client()
        assert client.timeout.read == 12.0

        await upstream.aclose()

        assert client.is_closed
        assert upstream._client is None

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self) -> None:
        client = httpx.AsyncClient()
        upstream = UpstreamClient(RelaySettings(api_key="k"), client=client)

        await upstream.aclose()

        assert not client.is_closed
        await client.aclose()
