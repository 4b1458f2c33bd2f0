"""Streaming translation pipeline.

Bytes from the provider flow through three stages:
- FrameReassembler: byte chunks -> complete SSE frames
- translate_frame: frame -> ContentDelta | StreamEnd | Unparseable
- DownstreamEmitter: events -> client SSE messages
"""

from .emitter import DownstreamEmitter, encode_message
from .events import (
    END_SENTINEL,
    ContentDelta,
    SemanticEvent,
    StreamEnd,
    Unparseable,
    extract_content,
    extract_data,
    parse_payload,
    translate_frame,
)
from .frames import FrameReassembler

__all__ = [
    # Reassembly
    "FrameReassembler",
    # Translation
    "END_SENTINEL",
    "ContentDelta",
    "SemanticEvent",
    "StreamEnd",
    "Unparseable",
    "extract_content",
    "extract_data",
    "parse_payload",
    "translate_frame",
    # Emission
    "DownstreamEmitter",
    "encode_message",
]
