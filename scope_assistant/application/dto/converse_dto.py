# scope_assistant/application/dto/converse_dto.py
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from scope_assistant.domain.models import Citation

GENERATION_FAILED_MESSAGE = (
    "I'm sorry, I couldn't generate an answer right now. Please try again."
)


@dataclass(frozen=True)
class ConverseRequest:
    message: str
    document_id: str
    user_id: str
    session_id: str | None = None


@dataclass(frozen=True)
class ConverseAnswer:
    """Batched answer with its citations; `failed` marks the apology fallback."""

    content: str
    sources: list[Citation]
    session_id: str
    failed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "sources": [c.to_dict() for c in self.sources],
            "sessionId": self.session_id,
        }


@dataclass(frozen=True)
class StreamEvent:
    """One server-sent event of a streamed answer.

    Intermediate events carry `chunk`; the terminal event carries `sources`
    and `done=True`.
    """

    chunk: str | None = None
    sources: list[Citation] | None = None
    session_id: str | None = None
    done: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if not self.done:
            return {"chunk": self.chunk or ""}
        payload: dict[str, Any] = {
            "sources": [c.to_dict() for c in self.sources or []],
            "sessionId": self.session_id,
            "done": True,
        }
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class ConverseStream:
    """A prepared streaming answer.

    Validation, session resolution and retrieval already happened when this
    object exists; iterating `events` runs generation.
    """

    session_id: str
    events: Iterator[StreamEvent]

    def close(self) -> None:
        close = getattr(self.events, "close", None)
        if close is not None:
            close()
