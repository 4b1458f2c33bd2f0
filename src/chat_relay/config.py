"""Relay configuration loaded from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .errors import ConfigurationError

DEFAULT_API_URL = "https://api.deepseek.com/chat/completions"
DEFAULT_MODEL = "deepseek-chat"


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class RelaySettings:
    """Relay configuration."""

    # Upstream provider
    api_key: str | None = None
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL

    # Server
    host: str = "127.0.0.1"
    port: int = 3001
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Optional side-channel cache
    redis_url: str | None = None
    cache_ttl: int = 3600

    # Timeouts (seconds)
    connect_timeout: float = 10.0
    idle_timeout: float = 60.0
    session_timeout: float | None = 300.0

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> RelaySettings:
        """Build settings from environment variables.

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed.
        """
        env = os.environ if env is None else env

        session_timeout = _float(env, "CHAT_RELAY_SESSION_TIMEOUT", 300.0)
        origins = [
            o.strip() for o in env.get("CHAT_RELAY_CORS_ORIGINS", "*").split(",") if o.strip()
        ]

        return cls(
            api_key=env.get("DEEPSEEK_API_KEY") or None,
            api_url=env.get("DEEPSEEK_API_URL") or DEFAULT_API_URL,
            model=env.get("DEEPSEEK_MODEL") or DEFAULT_MODEL,
            host=env.get("HOST") or "127.0.0.1",
            port=_int(env, "PORT", 3001),
            cors_origins=origins or ["*"],
            redis_url=env.get("REDIS_URL") or None,
            cache_ttl=_int(env, "CHAT_RELAY_CACHE_TTL", 3600),
            connect_timeout=_float(env, "CHAT_RELAY_CONNECT_TIMEOUT", 10.0),
            idle_timeout=_float(env, "CHAT_RELAY_IDLE_TIMEOUT", 60.0),
            session_timeout=session_timeout if session_timeout > 0 else None,
        )

    def require_api_key(self) -> str:
        """Return the API key or raise if it is not configured."""
        if not self.api_key:
            raise ConfigurationError("API key not configured")
        return self.api_key

    def to_dict(self) -> dict[str, object]:
        """Effective configuration with the API key masked."""
        key = self.api_key
        masked = f"{key[:4]}...{key[-4:]}" if key and len(key) > 12 else ("***" if key else None)
        return {
            "api_key": masked,
            "api_url": self.api_url,
            "model": self.model,
            "host": self.host,
            "port": self.port,
            "cors_origins": self.cors_origins,
            "redis_url": self.redis_url,
            "cache_ttl": self.cache_ttl,
            "connect_timeout": self.connect_timeout,
            "idle_timeout": self.idle_timeout,
            "session_timeout": self.session_timeout,
        }
