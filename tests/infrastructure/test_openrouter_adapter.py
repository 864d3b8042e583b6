"""Contract tests for the OpenRouter completion adapter (httpx mock transport)."""

import json
import threading
from collections.abc import Callable, Iterator

import httpx
import pytest

from scope_assistant.application.ports.llm_port import ChatMessage
from scope_assistant.domain.errors import GenerationFailed
from scope_assistant.infrastructure.llm.openrouter_adapter import OpenRouterCompletionAdapter

MESSAGES = [
    ChatMessage(role="system", content="Answer from the content."),
    ChatMessage(role="user", content="Question: When?"),
]


def frame(content: str) -> bytes:
    return f"data: {json.dumps({'choices': [{'delta': {'content': content}}]})}\n\n".encode()


def make_adapter(handler: Callable[[httpx.Request], httpx.Response]) -> OpenRouterCompletionAdapter:
    return OpenRouterCompletionAdapter(
        base_url="https://llm.test/api/v1",
        api_key="sk-test",
        model="test/model",
        transport=httpx.MockTransport(handler),
    )


class TestCompleteSync:
    def test_posts_chat_completion_and_parses_reply(self) -> None:
        seen: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["title"] = request.headers["X-Title"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "model": "test/model",
                    "choices": [{"message": {"content": "Friday."}, "finish_reason": "stop"}],
                    "usage": {"total_tokens": 42},
                },
            )

        response = make_adapter(handler).complete_sync(MESSAGES)

        assert response.text == "Friday."
        assert response.usage_tokens == 42
        assert response.model == "test/model"
        assert seen["url"] == "https://llm.test/api/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["title"] == "ScopeAI"
        body = seen["body"]
        assert isinstance(body, dict)
        assert body["stream"] is False
        assert body["temperature"] == 0.3
        assert body["max_tokens"] == 2000
        assert body["messages"][1] == {"role": "user", "content": "Question: When?"}

    @pytest.mark.parametrize("status", [401, 429, 500, 502])
    def test_error_status_raises(self, status: int) -> None:
        adapter = make_adapter(lambda _req: httpx.Response(status, text="upstream failure"))
        with pytest.raises(GenerationFailed, match=str(status)):
            adapter.complete_sync(MESSAGES)

    def test_unexpected_payload_raises(self) -> None:
        adapter = make_adapter(lambda _req: httpx.Response(200, json={"choices": []}))
        with pytest.raises(GenerationFailed):
            adapter.complete_sync(MESSAGES)

    def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GenerationFailed):
            make_adapter(handler).complete_sync(MESSAGES)


class TestCompleteStream:
    def test_stream_yields_deltas_in_order(self) -> None:
        seen: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["accept"] = request.headers["Accept"]
            seen["stream"] = json.loads(request.content)["stream"]
            body = b": OPENROUTER PROCESSING\n\n" + frame("The ") + frame("deadline") + b"data: [DONE]\n\n"
            return httpx.Response(200, content=body)

        deltas = list(make_adapter(handler).complete_stream(MESSAGES))

        assert deltas == ["The ", "deadline"]
        assert seen == {"accept": "text/event-stream", "stream": True}

    def test_frames_split_across_transport_chunks(self) -> None:
        payload = frame("Grüße") + b"data: [DONE]\n\n"

        def chunks() -> Iterator[bytes]:
            for i in range(0, len(payload), 5):
                yield payload[i : i + 5]

        adapter = make_adapter(lambda _req: httpx.Response(200, content=chunks()))
        assert list(adapter.complete_stream(MESSAGES)) == ["Grüße"]

    def test_missing_completion_marker_raises_after_deltas(self) -> None:
        adapter = make_adapter(lambda _req: httpx.Response(200, content=frame("partial")))
        received: list[str] = []
        with pytest.raises(GenerationFailed, match="completion marker"):
            for delta in adapter.complete_stream(MESSAGES):
                received.append(delta)
        assert received == ["partial"]

    def test_error_status_raises_before_any_delta(self) -> None:
        adapter = make_adapter(lambda _req: httpx.Response(503, text="overloaded"))
        with pytest.raises(GenerationFailed, match="503"):
            list(adapter.complete_stream(MESSAGES))

    def test_malformed_frames_are_skipped(self) -> None:
        body = frame("a") + b"data: {broken\n\n" + frame("b") + b"data: [DONE]\n\n"
        adapter = make_adapter(lambda _req: httpx.Response(200, content=body))
        assert list(adapter.complete_stream(MESSAGES)) == ["a", "b"]

    def test_cancel_stops_without_error(self) -> None:
        cancel = threading.Event()
        payload = [frame("a"), frame("b"), frame("c"), b"data: [DONE]\n\n"]
        adapter = make_adapter(lambda _req: httpx.Response(200, content=iter(payload)))

        received: list[str] = []
        for delta in adapter.complete_stream(MESSAGES, cancel=cancel):
            received.append(delta)
            cancel.set()

        assert received == ["a"]

    def test_provider_error_frame_raises(self) -> None:
        body = frame("a") + b'data: {"error": {"message": "model overloaded"}}\n\n'
        adapter = make_adapter(lambda _req: httpx.Response(200, content=body))
        with pytest.raises(GenerationFailed, match="model overloaded"):
            list(adapter.complete_stream(MESSAGES))
