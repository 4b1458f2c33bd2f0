"""Client for a running chat relay.

Consumes the relay's SSE stream and yields typed messages:

    async with RelayClient("http://localhost:3001") as client:
        async for message in client.chat("hi"):
            if message.type == "chunk":
                print(message.text, end="")
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Literal

import httpx
from pydantic import BaseModel

from .streaming import FrameReassembler

logger = logging.getLogger(__name__)


class RelayClientError(Exception):
    """The relay refused the request before opening a stream."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class RelayMessage(BaseModel):
    """One message from the relay stream."""

    type: Literal["chunk", "done", "error"]
    text: str = ""


def parse_message(frame: str) -> RelayMessage | None:
    """Parse one relay SSE frame."""
    event = "message"
    data_lines: list[str] = []
    for line in frame.splitlines():
        name, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if name == "event":
            event = value
        elif name == "data":
            data_lines.append(value)

    if not data_lines:
        return None
    try:
        payload = json.loads("\n".join(data_lines))
    except json.JSONDecodeError:
        logger.warning(f"Failed to parse SSE data: {data_lines}")
        return None
    if not isinstance(payload, dict):
        return None

    if event == "error":
        return RelayMessage(type="error", text=str(payload.get("message", "")))
    if payload.get("done"):
        return RelayMessage(type="done")
    if "chunk" in payload:
        return RelayMessage(type="chunk", text=str(payload["chunk"]))
    return None


class RelayClient:
    """Async client for POST /chat."""

    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout, read=None),  # No read timeout for SSE
        )

    async def __aenter__(self) -> RelayClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def chat(self, prompt: str) -> AsyncIterator[RelayMessage]:
        """Send a prompt and yield messages until done or error."""
        request = self._client.build_request("POST", "/chat", json={"prompt": prompt})
        response = await self._client.send(request, stream=True)
        try:
            if response.is_error:
                await response.aread()
                try:
                    data = response.json()
                except ValueError:
                    data = None
                detail = data.get("error") if isinstance(data, dict) else None
                raise RelayClientError(response.status_code, detail or response.text)

            reassembler = FrameReassembler()
            async for chunk in response.aiter_bytes():
                for frame in reassembler.feed(chunk):
                    message = parse_message(frame)
                    if message is None:
                        continue
                    yield message
                    if message.type != "chunk":
                        return
        finally:
            await response.aclose()

    async def close(self) -> None:
        """Close the client."""
        await self._client.aclose()
