"""Error taxonomy for the chat relay.

Pre-stream errors (configuration, validation) become plain JSON HTTP
responses. Upstream errors become a terminal ``error`` event inside an
already-open event stream. Frame parse errors never leave the translator.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all relay errors."""

    code = "RELAY_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        """Render as a JSON error body."""
        return {"error": self.message, "code": self.code}


class ConfigurationError(RelayError):
    """Required configuration (e.g. the API key) is missing or malformed."""

    code = "CONFIGURATION_ERROR"
    status_code = 500


class ValidationError(RelayError):
    """The client request is missing required input."""

    code = "VALIDATION_ERROR"
    status_code = 400


class UpstreamRequestError(RelayError):
    """The completion provider answered with a non-success status."""

    code = "UPSTREAM_REQUEST_ERROR"
    status_code = 502

    def __init__(self, upstream_status: int, reason: str, body: str = ""):
        super().__init__(f"API Error: {upstream_status} {reason}".rstrip())
        self.upstream_status = upstream_status
        self.reason = reason
        self.body = body


class UpstreamTransportError(RelayError):
    """The upstream connection failed or broke mid-stream."""

    code = "UPSTREAM_TRANSPORT_ERROR"
    status_code = 502


class UpstreamTimeoutError(UpstreamTransportError):
    """The upstream went idle, or the session ran past its deadline."""

    code = "UPSTREAM_TIMEOUT"
    status_code = 504


class FrameParseError(RelayError):
    """A frame's data payload is not a JSON object."""

    code = "FRAME_PARSE_ERROR"
    status_code = 502

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw
