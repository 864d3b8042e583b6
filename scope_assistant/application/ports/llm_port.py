import threading
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "system" | "user" | "assistant"
    content: str


@dataclass(frozen=True)
class LLMResponse:
    text: str
    finish_reason: str = "stop"
    usage_tokens: int | None = None
    model: str | None = None


class LLMPort(Protocol):
    """Completion provider with two explicitly typed operations.

    Both raise GenerationFailed on non-success status, transport errors or
    (streaming) a stream that ends without its completion marker.
    """

    def complete_sync(self, messages: Sequence[ChatMessage]) -> LLMResponse: ...

    def complete_stream(
        self, messages: Sequence[ChatMessage], cancel: threading.Event | None = None
    ) -> Iterator[str]:
        """Yield text deltas in receipt order.

        Args:
            messages: Chat messages (system + user)
            cancel: Checked between transport reads; once set the upstream
                response is released and the iterator stops without error.

        Note:
            Closing the returned generator also releases the upstream response.
        """
        ...
