"""Frame reassembly for Server-Sent Events byte streams.

Network transports deliver bytes with arbitrary boundaries: a frame, its
blank-line delimiter, or a multibyte UTF-8 character can all be split
between two reads. The reassembler keeps one buffer and only splits on
complete delimiters, so the frames it produces do not depend on where the
chunk boundaries fall.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

# A line ending followed by an empty line, in any mix of CRLF, LF and CR.
# A lone CR only ends a line when it is not the first half of a CRLF.
FRAME_DELIMITER = re.compile(rb"(?:\r\n|\n|\r(?!\n))(?:\r\n|\n|\r)")

# Longest delimiter is 4 bytes; a split one starts at most 3 bytes back.
MAX_DELIMITER_OVERLAP = 3


class FrameReassembler:
    """Turns successive byte chunks into complete SSE frames.

    Usage:
        reassembler = FrameReassembler()
        async for chunk in response.aiter_bytes():
            for frame in reassembler.feed(chunk):
                handle(frame)
        for frame in reassembler.flush():
            handle(frame)
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._scan_from = 0

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet part of a complete frame."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> list[str]:
        """Add a chunk and return every frame it completes, in order."""
        if not chunk:
            return []

        self._buffer += chunk

        # Spans are collected before the buffer is resized
        spans = [m.span() for m in FRAME_DELIMITER.finditer(self._buffer, self._scan_from)]

        frames: list[str] = []
        start = 0
        for delimiter_start, delimiter_end in spans:
            self._append(frames, self._buffer[start:delimiter_start])
            start = delimiter_end

        if start:
            del self._buffer[:start]
        self._scan_from = max(len(self._buffer) - MAX_DELIMITER_OVERLAP, 0)
        return frames

    def flush(self) -> list[str]:
        """Return the trailing fragment as a final frame and empty the buffer.

        Called when the upstream ends without a closing blank line.
        """
        frames: list[str] = []
        if self._buffer:
            logger.debug(f"Flushing {len(self._buffer)} unterminated bytes as final frame")
            self._append(frames, self._buffer)
        self.reset()
        return frames

    def reset(self) -> None:
        """Drop any buffered bytes."""
        self._buffer = bytearray()
        self._scan_from = 0

    @staticmethod
    def _append(frames: list[str], raw: bytes | bytearray) -> None:
        text = raw.decode("utf-8", errors="replace").strip("\r\n")
        if text.strip():
            frames.append(text)
