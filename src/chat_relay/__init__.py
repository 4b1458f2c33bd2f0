"""Chat Relay - streams chat completions from an upstream provider as SSE."""

from .app import create_app
from .config import RelaySettings
from .session import RelaySession, SessionOutcome, SessionState

__all__ = [
    "create_app",
    "RelaySettings",
    "RelaySession",
    "SessionOutcome",
    "SessionState",
]

__version__ = "0.1.0"
