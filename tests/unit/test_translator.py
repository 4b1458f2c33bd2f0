"""Unit tests for frame -> semantic event translation."""

from __future__ import annotations

import pytest

from chat_relay.errors import FrameParseError
from chat_relay.streaming.events import (
    ContentDelta,
    StreamEnd,
    Unparseable,
    extract_content,
    extract_data,
    parse_payload,
    translate_frame,
)

# =============================================================================
# extract_data
# =============================================================================


class TestExtractData:
    """Tests for SSE data field extraction."""

    def test_data_with_space(self) -> None:
        assert extract_data("data: hello") == "hello"

    def test_data_without_space(self) -> None:
        assert extract_data("data:hello") == "hello"

    def test_only_one_leading_space_stripped(self) -> None:
        assert extract_data("data:  two") == " two"

    def test_multiple_data_lines_joined(self) -> None:
        assert extract_data("data: a\ndata: b") == "a\nb"

    def test_comment_only_frame(self) -> None:
        """Keep-alive comments carry no data."""
        assert extract_data(": keep-alive") is None

    def test_other_fields_ignored(self) -> None:
        assert extract_data("event: ping\nid: 3") is None
        assert extract_data("event: message\ndata: x") == "x"

    def test_crlf_lines(self) -> None:
        assert extract_data("event: message\r\ndata: x") == "x"


# =============================================================================
# parse_payload / extract_content
# =============================================================================


class TestParsePayload:
    """Tests for JSON payload decoding."""

    def test_valid_object(self) -> None:
        assert parse_payload('{"a": 1}') == {"a": 1}

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(FrameParseError) as exc_info:
            parse_payload('{"choices": [')
        assert exc_info.value.raw == '{"choices": ['

    def test_non_object_raises(self) -> None:
        with pytest.raises(FrameParseError, match="Expected JSON object"):
            parse_payload("[1, 2]")


class TestExtractContent:
    """Tests for choices[0].delta.content extraction."""

    def test_content_present(self) -> None:
        assert extract_content({"choices": [{"delta": {"content": "hi"}}]}) == "hi"

    @pytest.mark.parametrize(
        "chunk",
        [
            {},
            {"choices": []},
            {"choices": "nope"},
            {"choices": [None]},
            {"choices": [{}]},
            {"choices": [{"delta": None}]},
            {"choices": [{"delta": {"role": "assistant"}}]},
            {"choices": [{"delta": {"content": ""}}]},
            {"choices": [{"delta": {"content": None}}]},
            {"choices": [{"delta": {"content": 42}}]},
        ],
    )
    def test_content_absent(self, chunk: dict) -> None:
        assert extract_content(chunk) is None


# =============================================================================
# translate_frame
# =============================================================================


class TestTranslateFrame:
    """Tests for the frame translator."""

    def test_content_delta(self) -> None:
        frame = 'data: {"choices": [{"delta": {"content": "He"}}]}'
        assert translate_frame(frame) == ContentDelta(text="He")

    def test_sentinel_is_stream_end(self) -> None:
        assert translate_frame("data: [DONE]") == StreamEnd()

    def test_sentinel_with_whitespace(self) -> None:
        assert translate_frame("data:  [DONE]  ") == StreamEnd()

    def test_sentinel_never_content(self) -> None:
        """The end marker is never forwarded as text."""
        event = translate_frame("data: [DONE]")
        assert not isinstance(event, ContentDelta)

    def test_keep_alive_discarded(self) -> None:
        assert translate_frame(": keep-alive") is None

    def test_malformed_json_is_unparseable(self) -> None:
        event = translate_frame('data: {"choices": [{"delta"')
        assert isinstance(event, Unparseable)
        assert event.raw == '{"choices": [{"delta"'
        assert "Invalid JSON" in event.reason

    def test_empty_content_is_noop(self) -> None:
        assert translate_frame('data: {"choices": [{"delta": {"content": ""}}]}') is None

    def test_role_only_chunk_is_noop(self) -> None:
        frame = 'data: {"choices": [{"delta": {"role": "assistant"}, "index": 0}]}'
        assert translate_frame(frame) is None

    def test_finish_chunk_is_noop(self) -> None:
        frame = 'data: {"choices": [{"delta": {}, "finish_reason": "stop"}]}'
        assert translate_frame(frame) is None

    def test_unicode_content(self) -> None:
        frame = 'data: {"choices": [{"delta": {"content": "日本語 🎌"}}]}'
        assert translate_frame(frame) == ContentDelta(text="日本語 🎌")

    def test_escaped_newlines_preserved(self) -> None:
        frame = 'data: {"choices": [{"delta": {"content": "a\\nb"}}]}'
        assert translate_frame(frame) == ContentDelta(text="a\nb")
