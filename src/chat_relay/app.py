"""Chat Relay Application.

Creates the Starlette ASGI application with all routes.

Routes:
- /health - Health check
- /chat - Prompt relay (SSE stream)
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route

from .cache import ResponseCache, build_cache
from .config import RelaySettings
from .routes import chat_routes, health_routes
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)


def create_app(
    settings: RelaySettings | None = None,
    upstream: UpstreamClient | None = None,
    cache: ResponseCache | None = None,
) -> Starlette:
    """Create the relay application.

    Args:
        settings: Relay settings (read from the environment if omitted)
        upstream: Upstream client (built from settings if omitted)
        cache: Reply cache (Redis if REDIS_URL is set, else inert)

    Returns:
        Configured Starlette application
    """
    settings = settings or RelaySettings.from_env()
    upstream = upstream or UpstreamClient(settings)
    cache = cache or build_cache(settings)

    if not settings.api_key:
        logger.warning("DEEPSEEK_API_KEY is not set; /chat will answer 500")

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        await cache.connect()
        try:
            yield
        finally:
            await upstream.aclose()
            await cache.close()

    # Combine all routes
    routes: list[Route] = []
    routes.extend(health_routes)
    routes.extend(chat_routes)

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        ),
    ]

    app = Starlette(routes=routes, middleware=middleware, lifespan=lifespan)
    app.state.settings = settings
    app.state.upstream = upstream
    app.state.cache = cache
    return app
