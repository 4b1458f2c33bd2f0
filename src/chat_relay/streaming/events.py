"""Translation of upstream frames into semantic events.

The upstream speaks OpenAI-style chat-completion chunks over SSE:

    data: {"choices": [{"delta": {"content": "He"}}]}

    data: [DONE]

Each frame maps to at most one event. Frames without a data field
(comments, keep-alives) and chunks without content map to nothing.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from ..errors import FrameParseError

logger = logging.getLogger(__name__)

# Provider end-of-stream marker, distinct from the transport closing.
END_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class ContentDelta:
    """A piece of assistant text to forward."""

    text: str


@dataclass(frozen=True)
class StreamEnd:
    """The provider sent its end-of-stream sentinel."""


@dataclass(frozen=True)
class Unparseable:
    """A data payload that could not be decoded. Non-fatal."""

    raw: str
    reason: str = ""


SemanticEvent = ContentDelta | StreamEnd | Unparseable


def extract_data(frame: str) -> str | None:
    """Return the frame's data payload, or None if it carries no data field.

    Multiple ``data:`` lines are joined with newlines. Comment lines
    (starting with ``:``) and other fields are ignored.
    """
    lines: list[str] = []
    for line in frame.splitlines():
        if not line or line.startswith(":"):
            continue
        name, sep, value = line.partition(":")
        if name != "data":
            continue
        if sep and value.startswith(" "):
            value = value[1:]
        lines.append(value)

    if not lines:
        return None
    return "\n".join(lines)


def parse_payload(payload: str) -> dict[str, Any]:
    """Decode a data payload as a JSON object.

    Raises:
        FrameParseError: If the payload is not valid JSON or not an object.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise FrameParseError(f"Invalid JSON in frame: {e}", payload) from e
    if not isinstance(data, dict):
        raise FrameParseError(f"Expected JSON object, got {type(data).__name__}", payload)
    return data


def extract_content(chunk: dict[str, Any]) -> str | None:
    """Pull ``choices[0].delta.content`` out of a completion chunk."""
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) and content else None


def translate_frame(frame: str) -> SemanticEvent | None:
    """Map one upstream frame to a semantic event (or nothing)."""
    payload = extract_data(frame)
    if payload is None:
        return None

    payload = payload.strip()
    if payload == END_SENTINEL:
        return StreamEnd()

    try:
        chunk = parse_payload(payload)
    except FrameParseError as e:
        return Unparseable(raw=e.raw, reason=e.message)

    content = extract_content(chunk)
    if content is None:
        return None
    return ContentDelta(text=content)
