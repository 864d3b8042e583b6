from dataclasses import dataclass, field
from importlib import import_module
from typing import Any

from loguru import logger

from scope_assistant.application.ports.embedding_port import EmbeddingPort
from scope_assistant.domain.errors import EmbeddingError


@dataclass
class OpenAIEmbeddingAdapter(EmbeddingPort):
    """Embeddings through an OpenAI-compatible endpoint (OpenRouter by default)."""

    base_url: str = "https://openrouter.ai/api/v1"
    api_key: str = ""
    model: str = "openai/text-embedding-3-small"
    timeout_s: float = 15.0
    app_url: str = "http://localhost:3000"
    _client: Any | None = field(default=None, init=False, repr=False)

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                OpenAI = import_module("openai").OpenAI
            except Exception as ex:  # pragma: no cover
                raise EmbeddingError("openai not available; install runtime deps") from ex
            self._client = OpenAI(
                base_url=self.base_url,
                api_key=self.api_key,
                timeout=self.timeout_s,
                default_headers={"HTTP-Referer": self.app_url, "X-Title": "ScopeAI"},
            )
        return self._client

    def embed(self, text: str) -> list[float]:
        client = self._get_client()
        try:
            resp: Any = client.embeddings.create(model=self.model, input=text)
            vector = list(resp.data[0].embedding)
        except Exception as ex:  # noqa: BLE001
            # Timeouts land here too; hybrid retrieval degrades on EmbeddingError
            raise EmbeddingError(f"embedding request failed: {ex}") from ex
        if not vector:
            raise EmbeddingError("embedding provider returned an empty vector")
        logger.debug("embedded {} chars into {}-d vector", len(text), len(vector))
        return vector
