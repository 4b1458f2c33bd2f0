"""Upstream chat-completion client.

Issues the single streaming request to the provider and exposes the
response body as an async iterator of byte chunks. httpx errors are
translated into the relay's error taxonomy so the session only ever
deals with RelayError subclasses.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from typing import Any

import httpx

from .config import RelaySettings
from .errors import UpstreamRequestError, UpstreamTimeoutError, UpstreamTransportError

logger = logging.getLogger(__name__)

# Upstream error bodies are only logged; keep them bounded.
MAX_ERROR_BODY = 2048


class UpstreamClient:
    """Streaming client for an OpenAI-compatible chat-completions endpoint."""

    def __init__(
        self,
        settings: RelaySettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the upstream client.

        Args:
            settings: Relay settings (URL, model, key, timeouts)
            client: Optional shared httpx client. If omitted, one is created
                lazily and closed by aclose().
        """
        self.settings = settings
        self._client = client
        self._owns_client = client is None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure client is initialized."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    self.settings.connect_timeout,
                    read=self.settings.idle_timeout,
                ),
            )
        return self._client

    def build_payload(self, prompt: str) -> dict[str, Any]:
        """Request body for a single-message streaming completion."""
        return {
            "model": self.settings.model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": True,
        }

    @contextlib.asynccontextmanager
    async def open_stream(self, prompt: str) -> AsyncIterator[AsyncGenerator[bytes, None]]:
        """Open a streaming completion and yield its byte chunks.

        Usage:
            async with upstream.open_stream("hi") as chunks:
                async for chunk in chunks:
                    ...

        Raises:
            UpstreamRequestError: Non-success status from the provider
            UpstreamTransportError: Connection failed or broke mid-stream
            UpstreamTimeoutError: Connect or read timed out
        """
        client = self._ensure_client()
        request = client.build_request(
            "POST",
            self.settings.api_url,
            json=self.build_payload(prompt),
            headers={
                "Authorization": f"Bearer {self.settings.require_api_key()}",
                "Accept": "text/event-stream",
            },
        )

        try:
            response = await client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Timed out connecting to completion provider: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamTransportError(f"Failed to reach completion provider: {e}") from e

        try:
            if not response.is_success:
                body = await self._read_error_body(response)
                logger.error(
                    f"Upstream API error: {response.status_code} {response.reason_phrase} {body}"
                )
                raise UpstreamRequestError(response.status_code, response.reason_phrase, body)

            logger.info(f"Upstream accepted request: {response.status_code}")
            yield self._iter_bytes(response)
        finally:
            await response.aclose()

    async def _iter_bytes(self, response: httpx.Response) -> AsyncGenerator[bytes, None]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError("Completion provider stopped sending data") from e
        except (httpx.HTTPError, httpx.StreamError) as e:
            logger.error(f"Upstream stream error: {e!r}")
            raise UpstreamTransportError("Error in response stream from completion provider") from e

    @staticmethod
    async def _read_error_body(response: httpx.Response) -> str:
        try:
            body = await response.aread()
        except (httpx.HTTPError, httpx.StreamError) as e:
            return f"<unreadable error body: {e}>"
        return body[:MAX_ERROR_BODY].decode("utf-8", errors="replace")

    async def aclose(self) -> None:
        """Close the client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
