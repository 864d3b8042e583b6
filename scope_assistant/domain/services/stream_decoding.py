"""Incremental decoder for server-sent completion streams.

Why: The transport delivers arbitrary byte chunks, not event-aligned frames.
The decoder keeps the unterminated tail between reads, decodes one line at a
time and yields text deltas in receipt order. It is sequential by nature and
must never be shared between streams.

Frame handling:
- `data: {json}`   -> choices[0].delta.content, yielded when non-empty
- `data: [DONE]`   -> completion sentinel, sets `finished`
- `: comment`, `event:`, `id:`, blank lines -> ignored
- undecodable JSON -> recorded in `malformed` and skipped
- `data: {"error": ...}` -> GenerationFailed (the provider aborted the stream)
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from typing import Any

from scope_assistant.domain.errors import GenerationFailed, MalformedStreamFrame

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class SSEStreamDecoder:
    """Stateful byte-chunk -> text-delta decoder for one stream."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.finished = False
        self.malformed: list[MalformedStreamFrame] = []

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one transport chunk and return the deltas completed by it."""
        self._buffer.extend(chunk)
        deltas: list[str] = []
        while (idx := self._buffer.find(b"\n")) != -1:
            line = bytes(self._buffer[:idx])
            del self._buffer[: idx + 1]
            delta = self._decode_line(line)
            if delta:
                deltas.append(delta)
        return deltas

    def close(self) -> list[str]:
        """Flush a trailing line that arrived without a newline."""
        if not self._buffer:
            return []
        line = bytes(self._buffer)
        self._buffer.clear()
        delta = self._decode_line(line)
        return [delta] if delta else []

    def _decode_line(self, raw: bytes) -> str | None:
        try:
            line = raw.decode("utf-8").rstrip("\r")
        except UnicodeDecodeError as ex:
            self.malformed.append(MalformedStreamFrame(line=repr(raw), reason=str(ex)))
            return None

        if not line.startswith(DATA_PREFIX):
            return None
        payload = line[len(DATA_PREFIX) :].strip()
        if not payload:
            return None
        if payload == DONE_SENTINEL:
            self.finished = True
            return None

        try:
            event = json.loads(payload)
        except ValueError as ex:
            self.malformed.append(MalformedStreamFrame(line=line, reason=str(ex)))
            return None
        return self._extract_delta(line, event)

    def _extract_delta(self, line: str, event: Any) -> str | None:
        if not isinstance(event, dict):
            self.malformed.append(MalformedStreamFrame(line=line, reason="event is not an object"))
            return None
        if "error" in event:
            err = event["error"]
            message = err.get("message", err) if isinstance(err, dict) else err
            raise GenerationFailed(f"provider aborted stream: {message}")
        try:
            content = event["choices"][0]["delta"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError):
            # Role-only or usage-only frames carry no delta.
            return None
        return content if isinstance(content, str) and content else None


def decode_stream(chunks: Iterable[bytes], decoder: SSEStreamDecoder | None = None) -> Iterator[str]:
    """Yield deltas from a chunk iterable; fail if the sentinel never arrives."""
    dec = decoder or SSEStreamDecoder()
    for chunk in chunks:
        yield from dec.feed(chunk)
    yield from dec.close()
    if not dec.finished:
        raise GenerationFailed("stream ended without completion marker")
