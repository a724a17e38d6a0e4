"""Tests for the incremental stream block decoder.

Covers:
1. Blocks separated by a blank line, multiple data lines joined by newline
2. LF, CRLF and CR line endings (including a CRLF split across chunks)
3. Partial blocks buffered until completed or flushed
4. Decoding is independent of where the chunks are split
"""
import json

import pytest

from a2a_chat.clients.sse import SSEBlockDecoder, decode_block


def _decode_all(chunks: list[str]) -> list[str]:
    decoder = SSEBlockDecoder()
    events = []
    for chunk in chunks:
        events.extend(decoder.feed(chunk))
    events.extend(decoder.flush())
    return [event.data for event in events]


class TestDecodeBlock:
    """Test decoding of a single complete block."""

    def test_single_data_line(self):
        event = decode_block('data: {"a": 1}')
        assert event is not None
        assert event.data == '{"a": 1}'
        assert event.event == "message"

    def test_multiple_data_lines_joined_by_newline(self):
        event = decode_block("data: first\ndata: second")
        assert event.data == "first\nsecond"

    def test_data_without_space_after_colon(self):
        assert decode_block("data:{}").data == "{}"

    def test_non_data_fields_ignored(self):
        event = decode_block("id: 7\nevent: update\n: comment\ndata: x")
        assert event.data == "x"
        assert event.event == "update"

    def test_block_without_data_is_skipped(self):
        assert decode_block(": keep-alive") is None
        assert decode_block("event: ping") is None

    def test_whitespace_only_data_is_skipped(self):
        assert decode_block("data:   ") is None


class TestSSEBlockDecoder:
    """Test chunked feeding and flushing."""

    def test_two_blocks_in_one_chunk(self):
        assert _decode_all(["data: 1\n\ndata: 2\n\n"]) == ["1", "2"]

    def test_partial_block_buffered_until_separator(self):
        decoder = SSEBlockDecoder()
        assert decoder.feed("data: hel") == []
        assert decoder.pending == "data: hel"
        events = decoder.feed("lo\n\n")
        assert [e.data for e in events] == ["hello"]
        assert decoder.pending == ""

    def test_unterminated_final_block_flushed(self):
        decoder = SSEBlockDecoder()
        assert decoder.feed("data: 1\n\ndata: last") and decoder.pending == "data: last"
        assert [e.data for e in decoder.flush()] == ["last"]
        assert decoder.flush() == []

    def test_crlf_line_endings(self):
        assert _decode_all(["data: a\r\ndata: b\r\n\r\ndata: c\r\n\r\n"]) == ["a\nb", "c"]

    def test_crlf_split_across_chunks(self):
        assert _decode_all(["data: a\r", "\n\r", "\ndata: b"]) == ["a", "b"]

    def test_bare_cr_line_endings(self):
        assert _decode_all(["data: a\r\rdata: b\r\r"]) == ["a", "b"]

    def test_empty_stream(self):
        assert _decode_all([]) == []
        assert _decode_all(["", "\n\n", ": ping\n\n"]) == []

    @pytest.mark.parametrize("line_ending", ["\n", "\r\n"])
    def test_every_split_point_decodes_the_same(self, line_ending):
        payloads = [
            {"jsonrpc": "2.0", "result": {"kind": "status-update", "status": {"state": "working"}}},
            {"jsonrpc": "2.0", "result": {"kind": "artifact-update", "artifact": {"parts": [{"kind": "text", "text": "Hé"}]}}},
            {"jsonrpc": "2.0", "result": {"kind": "message", "parts": [{"kind": "text", "text": "ok"}]}},
        ]
        body = "".join(f"data: {json.dumps(p)}{line_ending}{line_ending}" for p in payloads)
        expected = [json.dumps(p) for p in payloads]

        for i in range(len(body) + 1):
            assert _decode_all([body[:i], body[i:]]) == expected, f"split at {i}"

    def test_one_character_chunks(self):
        body = "data: x\n\ndata: y\ndata: z\n\n"
        assert _decode_all(list(body)) == ["x", "y\nz"]
