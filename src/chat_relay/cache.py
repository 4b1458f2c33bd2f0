"""Optional side-channel cache for completed replies.

When REDIS_URL is configured, each successful session stores its prompt and
full reply in Redis with a TTL. The cache is write-only from the relay's
point of view and never affects the stream: failures are logged and ignored.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

import redis.asyncio as redis

from .config import RelaySettings

logger = logging.getLogger(__name__)

KEY_PREFIX = "chat-relay:session:"


@runtime_checkable
class ResponseCache(Protocol):
    """Protocol for recording completed replies."""

    name: str

    async def connect(self) -> None:
        """Prepare the cache for use."""
        ...

    async def record(self, session_id: str, prompt: str, content: str) -> None:
        """Store a completed reply."""
        ...

    async def close(self) -> None:
        """Release cache resources."""
        ...


class NullCache:
    """Inert cache used when none is configured."""

    name = "none"

    async def connect(self) -> None:
        pass

    async def record(self, session_id: str, prompt: str, content: str) -> None:
        pass

    async def close(self) -> None:
        pass


class RedisCache:
    """Redis-backed reply cache.

    Falls back to inert behaviour if Redis cannot be reached at connect time.
    """

    name = "redis"

    def __init__(self, url: str, ttl: int = 3600, client: redis.Redis | None = None) -> None:
        self.url = url
        self.ttl = ttl
        self._client = client

    @property
    def available(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Connect and ping; disable the cache on failure."""
        if self._client is None:
            self._client = redis.from_url(self.url, decode_responses=True)
        try:
            await self._client.ping()
            logger.info("Connected to Redis")
        except Exception as e:
            logger.warning(f"Redis connection failed, running without cache: {e}")
            await self._client.aclose()
            self._client = None

    async def record(self, session_id: str, prompt: str, content: str) -> None:
        if self._client is None:
            return
        record = {
            "session_id": session_id,
            "prompt": prompt,
            "content": content,
            "created_at": datetime.now(UTC).isoformat(),
        }
        try:
            await self._client.set(
                f"{KEY_PREFIX}{session_id}",
                json.dumps(record, ensure_ascii=False),
                ex=self.ttl,
            )
        except Exception as e:
            logger.warning(f"Failed to cache reply for {session_id}: {e}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def build_cache(settings: RelaySettings) -> ResponseCache:
    """Create the configured cache: Redis when REDIS_URL is set, else inert."""
    if not settings.redis_url:
        logger.info("REDIS_URL not set, running without cache")
        return NullCache()
    return RedisCache(settings.redis_url, ttl=settings.cache_ttl)
