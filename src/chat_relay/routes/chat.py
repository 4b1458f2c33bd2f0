"""Chat relay endpoint.

POST /chat {"prompt": "..."} streams the provider's reply as SSE.
Configuration and validation errors are answered with a JSON error body
before any stream is opened.
"""

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator

from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, StreamingResponse
from starlette.routing import Route

from ..errors import RelayError, ValidationError
from ..session import RelaySession

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}

# Seconds between client disconnect checks while the upstream is quiet
DISCONNECT_POLL_INTERVAL = 1.0


class ChatRequest(BaseModel):
    """Request to relay a prompt."""

    prompt: str | None = None


async def parse_chat_request(request: Request) -> str:
    """Read and validate the request body, returning the prompt.

    Raises:
        ValidationError: If the body is not a JSON object or the prompt is missing.
    """
    body = await request.body()
    try:
        data = json.loads(body) if body else {}
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON body") from None
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON body")

    try:
        req = ChatRequest.model_validate(data)
    except ModelValidationError:
        raise ValidationError("Prompt is required") from None
    if not req.prompt:
        raise ValidationError("Prompt is required")
    return req.prompt


async def stream_session(
    request: Request, session: RelaySession, queue: asyncio.Queue[str | None]
) -> AsyncIterator[str]:
    """Run a session in its own task and yield its messages in order.

    The client connection is polled between messages, so a disconnect is
    noticed even while the upstream sends nothing. On disconnect, or when
    the server closes the generator, the session task is cancelled, which
    closes the upstream response.
    """

    async def drive() -> None:
        try:
            await session.run()
        finally:
            queue.put_nowait(None)  # Signal completion

    task = asyncio.create_task(drive())

    try:
        while True:
            if await request.is_disconnected():
                logger.info(f"Client disconnected from session {session.session_id}")
                break

            try:
                message = await asyncio.wait_for(queue.get(), timeout=DISCONNECT_POLL_INTERVAL)
            except TimeoutError:
                continue  # Check disconnect and wait again

            if message is None:
                break
            yield message
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


async def chat(request: Request) -> JSONResponse | StreamingResponse:
    """Relay a prompt and stream the reply."""
    state = request.app.state
    try:
        state.settings.require_api_key()
        prompt = await parse_chat_request(request)
    except RelayError as e:
        logger.warning(f"Rejected chat request: {e.message}")
        return JSONResponse(e.to_dict(), status_code=e.status_code)

    queue: asyncio.Queue[str | None] = asyncio.Queue()

    async def send(message: str) -> None:
        queue.put_nowait(message)

    session = RelaySession(
        prompt,
        upstream=state.upstream,
        send=send,
        cache=state.cache,
        timeout=state.settings.session_timeout,
    )
    logger.info(f"Streaming session {session.session_id}")

    return StreamingResponse(
        stream_session(request, session, queue),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


chat_routes = [
    Route("/chat", chat, methods=["POST"]),
]
