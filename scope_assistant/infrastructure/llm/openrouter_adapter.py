"""Completion client for OpenAI-compatible chat endpoints (OpenRouter by default).

Batched requests parse the JSON body; streamed requests read raw byte chunks
from the transport and hand them to the SSE decoder, so frame reassembly
stays under our control.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from importlib import import_module
from typing import Any

from loguru import logger

from scope_assistant.application.ports.llm_port import ChatMessage, LLMPort, LLMResponse
from scope_assistant.domain.errors import GenerationFailed
from scope_assistant.domain.services.stream_decoding import SSEStreamDecoder


@dataclass
class OpenRouterCompletionAdapter(LLMPort):
    base_url: str = "https://openrouter.ai/api/v1"
    api_key: str = ""
    model: str = "meta-llama/llama-3.2-3b-instruct:free"
    temperature: float = 0.3
    max_tokens: int = 2000
    timeout_s: float = 60.0
    app_url: str = "http://localhost:3000"
    transport: Any | None = None  # httpx transport override (tests, proxies)
    _client: Any | None = field(default=None, init=False, repr=False)
    _httpx: Any | None = field(default=None, init=False, repr=False)

    def _require_httpx(self) -> Any:
        if self._httpx is None:
            try:
                self._httpx = import_module("httpx")
            except Exception as ex:  # pragma: no cover
                raise GenerationFailed("httpx not available; install runtime deps") from ex
        return self._httpx

    def _get_client(self) -> Any:
        if self._client is None:
            httpx = self._require_httpx()
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout_s,
                transport=self.transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "HTTP-Referer": self.app_url,
                    "X-Title": "ScopeAI",
                },
            )
        return self._client

    def _payload(self, messages: Sequence[ChatMessage], stream: bool) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": stream,
        }

    def complete_sync(self, messages: Sequence[ChatMessage]) -> LLMResponse:
        httpx = self._require_httpx()
        client = self._get_client()
        try:
            resp = client.post("/chat/completions", json=self._payload(messages, stream=False))
        except httpx.HTTPError as ex:
            raise GenerationFailed(f"completion request failed: {ex}") from ex

        if resp.status_code >= 400:
            logger.error("completion provider error {}: {}", resp.status_code, resp.text[:500])
            raise GenerationFailed(f"completion provider returned {resp.status_code}")

        try:
            data = resp.json()
            choice = data["choices"][0]
        except (ValueError, KeyError, IndexError, TypeError) as ex:
            raise GenerationFailed(f"unexpected completion payload: {ex}") from ex

        usage = data.get("usage") or {}
        return LLMResponse(
            text=(choice.get("message") or {}).get("content") or "",
            finish_reason=choice.get("finish_reason") or "stop",
            usage_tokens=usage.get("total_tokens"),
            model=data.get("model", self.model),
        )

    def complete_stream(
        self, messages: Sequence[ChatMessage], cancel: threading.Event | None = None
    ) -> Iterator[str]:
        httpx = self._require_httpx()
        client = self._get_client()
        decoder = SSEStreamDecoder()
        try:
            with client.stream(
                "POST",
                "/chat/completions",
                json=self._payload(messages, stream=True),
                headers={"Accept": "text/event-stream"},
            ) as resp:
                if resp.status_code >= 400:
                    body = resp.read().decode("utf-8", errors="replace")
                    logger.error("completion provider error {}: {}", resp.status_code, body[:500])
                    raise GenerationFailed(f"completion provider returned {resp.status_code}")
                for chunk in resp.iter_bytes():
                    if cancel is not None and cancel.is_set():
                        logger.info("stream cancelled by caller, releasing upstream response")
                        return
                    yield from decoder.feed(chunk)
                yield from decoder.close()
        except httpx.HTTPError as ex:
            raise GenerationFailed(f"completion stream failed: {ex}") from ex
        finally:
            if decoder.malformed:
                logger.warning("skipped {} malformed stream frames", len(decoder.malformed))

        if not decoder.finished:
            raise GenerationFailed("stream ended without completion marker")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
