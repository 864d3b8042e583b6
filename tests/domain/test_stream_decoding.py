"""Tests for the incremental SSE completion stream decoder."""

import json

import pytest

from scope_assistant.domain.errors import GenerationFailed
from scope_assistant.domain.services.stream_decoding import SSEStreamDecoder, decode_stream


def frame(content: str) -> bytes:
    event = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(event)}\n\n".encode()


DONE = b"data: [DONE]\n\n"


class TestSSEStreamDecoder:
    def test_deltas_in_receipt_order(self) -> None:
        dec = SSEStreamDecoder()
        assert dec.feed(frame("Hel") + frame("lo")) == ["Hel", "lo"]
        assert dec.feed(DONE) == []
        assert dec.finished is True

    def test_frame_split_across_chunks(self) -> None:
        data = frame("Hello world")
        dec = SSEStreamDecoder()
        out: list[str] = []
        for i in range(0, len(data), 7):
            out.extend(dec.feed(data[i : i + 7]))
        assert out == ["Hello world"]

    def test_multibyte_character_split_across_chunks(self) -> None:
        event = {"choices": [{"delta": {"content": "Größe €"}}]}
        data = f"data: {json.dumps(event, ensure_ascii=False)}\n".encode()
        cut = data.index("€".encode()) + 1  # inside the 3-byte sequence
        dec = SSEStreamDecoder()
        assert dec.feed(data[:cut]) == []
        assert dec.feed(data[cut:]) == ["Größe €"]
        assert dec.malformed == []

    def test_crlf_line_endings(self) -> None:
        dec = SSEStreamDecoder()
        assert dec.feed(frame("a").replace(b"\n", b"\r\n") + b"data: [DONE]\r\n") == ["a"]
        assert dec.finished

    def test_malformed_frame_is_skipped(self) -> None:
        dec = SSEStreamDecoder()
        out = dec.feed(frame("a") + b"data: {not json\n" + frame("b"))
        assert out == ["a", "b"]
        assert len(dec.malformed) == 1
        assert "{not json" in dec.malformed[0].line

    def test_non_object_event_is_malformed(self) -> None:
        dec = SSEStreamDecoder()
        assert dec.feed(b"data: [1, 2]\n") == []
        assert len(dec.malformed) == 1

    def test_comments_and_other_fields_ignored(self) -> None:
        dec = SSEStreamDecoder()
        out = dec.feed(b": OPENROUTER PROCESSING\nevent: message\nid: 1\n\n" + frame("x"))
        assert out == ["x"]
        assert dec.malformed == []

    def test_role_only_and_empty_deltas_yield_nothing(self) -> None:
        dec = SSEStreamDecoder()
        role_only = b'data: {"choices": [{"delta": {"role": "assistant"}}]}\n'
        assert dec.feed(role_only + frame("")) == []
        assert dec.malformed == []

    def test_error_frame_raises(self) -> None:
        dec = SSEStreamDecoder()
        with pytest.raises(GenerationFailed, match="rate limited"):
            dec.feed(b'data: {"error": {"message": "rate limited"}}\n')

    def test_close_flushes_trailing_line(self) -> None:
        dec = SSEStreamDecoder()
        assert dec.feed(frame("a") + b"data: [DONE]") == ["a"]
        assert dec.finished is False
        assert dec.close() == []
        assert dec.finished is True


class TestDecodeStream:
    def test_complete_stream(self) -> None:
        chunks = [frame("The "), frame("deadline"), DONE]
        assert list(decode_stream(chunks)) == ["The ", "deadline"]

    def test_missing_sentinel_raises_after_deltas(self) -> None:
        received: list[str] = []
        with pytest.raises(GenerationFailed, match="completion marker"):
            for delta in decode_stream([frame("partial")]):
                received.append(delta)
        assert received == ["partial"]

    def test_empty_stream_raises(self) -> None:
        with pytest.raises(GenerationFailed):
            list(decode_stream([]))
