"""Relay session lifecycle.

One RelaySession serves one POST /chat request. It owns all per-request
state and drives the pipeline:

    upstream bytes -> FrameReassembler -> translate_frame -> DownstreamEmitter

State machine:
    idle -> streaming -> closed
    idle -> closed  (upstream rejected the request or was unreachable)

Whatever happens upstream, the session ends with exactly one outcome:
done (a ``done`` message was sent), error (an ``error`` message was sent)
or cancelled (the client went away; nothing more is written).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from enum import Enum

from .cache import NullCache, ResponseCache
from .errors import RelayError, UpstreamTimeoutError
from .streaming import (
    ContentDelta,
    DownstreamEmitter,
    FrameReassembler,
    StreamEnd,
    Unparseable,
    translate_frame,
)
from .streaming.emitter import SendFn
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error during streaming"


class SessionState(str, Enum):
    """Session lifecycle states."""

    IDLE = "idle"
    STREAMING = "streaming"
    CLOSED = "closed"


class SessionOutcome(str, Enum):
    """How a closed session ended."""

    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"


class RelaySession:
    """Relays one prompt upstream and streams the reply to one client."""

    def __init__(
        self,
        prompt: str,
        upstream: UpstreamClient,
        send: SendFn,
        cache: ResponseCache | None = None,
        timeout: float | None = None,
        session_id: str | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            prompt: The user prompt to relay
            upstream: Client for the completion provider
            send: Async function delivering one encoded SSE message
            cache: Side-channel cache for completed replies
            timeout: Overall deadline in seconds (None for no deadline)
            session_id: Optional identifier (generated if omitted)
        """
        self.session_id = session_id or f"chat_{uuid.uuid4().hex[:12]}"
        self.prompt = prompt
        self.state = SessionState.IDLE
        self.outcome: SessionOutcome | None = None
        self.error: str | None = None

        self._upstream = upstream
        self._cache = cache or NullCache()
        self._timeout = timeout
        self._reassembler = FrameReassembler()
        self._emitter = DownstreamEmitter(send, lambda: self.is_open)
        self._content: list[str] = []
        self.skipped_frames = 0

    @property
    def is_open(self) -> bool:
        return self.state is not SessionState.CLOSED

    @property
    def content(self) -> str:
        """Text forwarded to the client so far."""
        return "".join(self._content)

    async def run(self) -> SessionOutcome:
        """Run the session to completion.

        Never raises for upstream failures; those become an ``error``
        message. Cancellation is recorded and re-raised.
        """
        logger.info(f"Session {self.session_id} started ({len(self.prompt)} chars prompt)")
        try:
            async with asyncio.timeout(self._timeout):
                await self._relay()
        except asyncio.CancelledError:
            logger.info(f"Session {self.session_id} cancelled by client disconnect")
            self._reassembler.reset()
            self._close(SessionOutcome.CANCELLED)
            raise
        except TimeoutError:
            await self._fail(UpstreamTimeoutError(f"Session exceeded {self._timeout}s deadline"))
        except RelayError as e:
            await self._fail(e)
        except Exception:
            logger.exception(f"Session {self.session_id} failed unexpectedly")
            await self._fail(RelayError(INTERNAL_ERROR_MESSAGE))
        else:
            await self._succeed()
        finally:
            # Covers cancellation while a terminal message was being written
            self._close(SessionOutcome.CANCELLED)

        return self.outcome  # type: ignore[return-value]

    async def _relay(self) -> None:
        async with (
            self._upstream.open_stream(self.prompt) as chunks,
            contextlib.aclosing(chunks),
        ):
            self.state = SessionState.STREAMING
            async for chunk in chunks:
                logger.debug(f"Session {self.session_id} received {len(chunk)} bytes")
                for frame in self._reassembler.feed(chunk):
                    if await self._dispatch(frame):
                        logger.info(f"Session {self.session_id} received end sentinel")
                        return

        for frame in self._reassembler.flush():
            if await self._dispatch(frame):
                break

    async def _dispatch(self, frame: str) -> bool:
        """Handle one frame. Returns True when the stream has ended."""
        event = translate_frame(frame)

        if isinstance(event, ContentDelta):
            self._content.append(event.text)
            await self._emitter.emit(event)
        elif isinstance(event, StreamEnd):
            return True
        elif isinstance(event, Unparseable):
            self.skipped_frames += 1
            logger.warning(
                f"Session {self.session_id} skipping unparseable frame: {event.reason} "
                f"({event.raw[:200]!r})"
            )
        return False

    async def _succeed(self) -> None:
        if not self.is_open:
            return
        await self._emitter.done()
        self._close(SessionOutcome.DONE)
        try:
            await self._cache.record(self.session_id, self.prompt, self.content)
        except Exception as e:
            logger.warning(f"Cache record failed for {self.session_id}: {e}")

    async def _fail(self, error: RelayError) -> None:
        if not self.is_open:
            return
        self.error = error.message
        logger.error(f"Session {self.session_id} failed: {error.message}")
        self._reassembler.reset()
        await self._emitter.error(error.message)
        self._close(SessionOutcome.ERROR)

    def _close(self, outcome: SessionOutcome) -> bool:
        """Transition to CLOSED. Returns False if already closed."""
        if self.state is SessionState.CLOSED:
            return False
        self.state = SessionState.CLOSED
        self.outcome = outcome
        logger.info(
            f"Session {self.session_id} closed: {outcome.value} "
            f"({self._emitter.sent} messages, {self.skipped_frames} skipped frames)"
        )
        return True

    def to_dict(self) -> dict[str, object]:
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "outcome": self.outcome.value if self.outcome else None,
            "error": self.error,
            "messages_sent": self._emitter.sent,
            "skipped_frames": self.skipped_frames,
        }
