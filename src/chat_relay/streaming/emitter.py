"""Downstream SSE emitter.

Renders semantic events into the client wire format:

    data: {"chunk": "He"}

    data: {"done": true}

    event: error
    data: {"message": "API Error: 429 Too Many Requests"}

Every message is written as soon as it is rendered.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .events import ContentDelta

logger = logging.getLogger(__name__)

SendFn = Callable[[str], Awaitable[None]]


def encode_message(payload: dict[str, Any], event: str | None = None) -> str:
    """Encode a JSON payload as one SSE message."""
    data = json.dumps(payload, ensure_ascii=False)
    if event:
        return f"event: {event}\ndata: {data}\n\n"
    return f"data: {data}\n\n"


class DownstreamEmitter:
    """Writes rendered messages to the client while the session is open.

    Writes on a closed session are dropped, and a failing send is logged
    rather than raised: by then the client connection may already be gone.
    """

    def __init__(self, send: SendFn, is_open: Callable[[], bool]) -> None:
        """Initialize the emitter.

        Args:
            send: Async function delivering one encoded message to the client
            is_open: Returns False once the owning session has closed
        """
        self._send = send
        self._is_open = is_open
        self.sent = 0

    async def emit(self, event: ContentDelta) -> bool:
        """Forward a content delta."""
        return await self._write(encode_message({"chunk": event.text}))

    async def done(self) -> bool:
        """Signal successful completion."""
        return await self._write(encode_message({"done": True}))

    async def error(self, message: str) -> bool:
        """Signal failure."""
        return await self._write(encode_message({"message": message}, event="error"))

    async def _write(self, message: str) -> bool:
        if not self._is_open():
            logger.warning(f"Session closed, dropping message: {message.strip()!r}")
            return False

        try:
            await self._send(message)
        except Exception as e:
            logger.warning(f"Failed to write to client: {e}")
            return False

        self.sent += 1
        logger.debug(f"Wrote to client: {message.strip()!r}")
        return True
