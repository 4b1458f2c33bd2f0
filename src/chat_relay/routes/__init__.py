"""HTTP routes."""

from .chat import chat_routes
from .health import health_routes

__all__ = ["chat_routes", "health_routes"]
