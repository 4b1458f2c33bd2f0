"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable

import httpx
import pytest

from chat_relay.config import RelaySettings
from chat_relay.upstream import UpstreamClient

Handler = Callable[[httpx.Request], httpx.Response]


def completion_frame(text: str) -> bytes:
    """One upstream SSE frame carrying a content delta."""
    chunk = {"choices": [{"index": 0, "delta": {"content": text}}]}
    return f"data: {json.dumps(chunk)}\n\n".encode()


DONE_FRAME = b"data: [DONE]\n\n"


async def byte_stream(*chunks: bytes, error: Exception | None = None) -> AsyncIterator[bytes]:
    """Deliver chunks one by one, optionally failing afterwards."""
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


class HangingStream(httpx.AsyncByteStream):
    """Upstream body that sends some bytes and then stalls."""

    def __init__(self, *chunks: bytes) -> None:
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk
        await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> RelaySettings:
    """Settings with a test API key and no cache."""
    return RelaySettings(
        api_key="sk-test-key-0123456789",
        api_url="https://upstream.test/chat/completions",
        session_timeout=5.0,
    )


@pytest.fixture
def frame() -> Callable[[str], bytes]:
    return completion_frame


@pytest.fixture
def done_frame() -> bytes:
    return DONE_FRAME


@pytest.fixture
def stream() -> Callable[..., AsyncIterator[bytes]]:
    return byte_stream


@pytest.fixture
def hanging_stream() -> type[HangingStream]:
    return HangingStream


@pytest.fixture
def make_upstream(settings: RelaySettings) -> Callable[[Handler], UpstreamClient]:
    """Build an UpstreamClient whose HTTP calls go to a mock handler."""

    def factory(handler: Handler) -> UpstreamClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return UpstreamClient(settings, client=client)

    return factory
