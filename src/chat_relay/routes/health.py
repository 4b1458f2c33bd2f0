"""Health check endpoint."""

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    state = request.app.state
    return JSONResponse(
        {
            "status": "ok",
            "upstream_configured": bool(state.settings.api_key),
            "cache": state.cache.name,
        }
    )


health_routes = [
    Route("/health", health_check, methods=["GET"]),
]
