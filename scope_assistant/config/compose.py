"""Dependency injection container with environment-driven wiring.

Why: Single place for wiring; every component receives its collaborators
through its constructor, so tests build their own graph with fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from scope_assistant.application.ports import (
    ClockPort,
    EmbeddingPort,
    LLMPort,
    PassageStorePort,
    SessionStorePort,
    TelemetryPort,
)
from scope_assistant.config.settings import AppSettings

if TYPE_CHECKING:
    from scope_assistant.application.use_cases.converse import Converse
    from scope_assistant.application.use_cases.retrieve_passages import RetrievePassages
    from scope_assistant.application.use_cases.session_manager import SessionManager
    from scope_assistant.infrastructure.stores.postgres_base import PostgresPool


class Container:
    """Dependency injection container for application components.

    Responsibilities:
    1. Read settings from environment (via AppSettings)
    2. Choose adapters based on settings (store_backend, telemetry_enabled)
    3. Inject dependencies into use cases

    Adapters are built lazily and cached per container instance.
    """

    def __init__(self, settings: AppSettings | None = None) -> None:
        self.settings = settings or AppSettings()
        self._embedding: EmbeddingPort | None = None
        self._llm: LLMPort | None = None
        self._passages: PassageStorePort | None = None
        self._sessions: SessionStorePort | None = None
        self._clock: ClockPort | None = None
        self._telemetry: TelemetryPort | None = None
        self._pg_pool: PostgresPool | None = None

    # ===== Adapters =====

    def get_embedding(self) -> EmbeddingPort:
        if self._embedding is None:
            self._embedding = self._build_embedding()
        return self._embedding

    def get_llm(self) -> LLMPort:
        if self._llm is None:
            self._llm = self._build_llm()
        return self._llm

    def get_passage_store(self) -> PassageStorePort:
        if self._passages is None:
            self._passages = self._build_passage_store()
        return self._passages

    def get_session_store(self) -> SessionStorePort:
        if self._sessions is None:
            self._sessions = self._build_session_store()
        return self._sessions

    def get_clock(self) -> ClockPort:
        if self._clock is None:
            from scope_assistant.infrastructure.time.system_clock import SystemClock

            self._clock = SystemClock()
        return self._clock

    def get_telemetry(self) -> TelemetryPort:
        if self._telemetry is None:
            self._telemetry = self._build_telemetry()
        return self._telemetry

    def get_pg_pool(self) -> PostgresPool:
        """One connection pool shared by the passage and session stores."""
        if self._pg_pool is None:
            from scope_assistant.infrastructure.stores.postgres_base import PostgresPool

            self._pg_pool = PostgresPool(
                dsn=self.settings.database_url, max_size=self.settings.db_pool_max_size
            )
        return self._pg_pool

    # ===== Use Cases =====

    def get_retrieve_use_case(self) -> RetrievePassages:
        from scope_assistant.application.use_cases.retrieve_passages import RetrievePassages

        return RetrievePassages(
            embedding=self.get_embedding(),
            passages=self.get_passage_store(),
            telemetry=self.get_telemetry(),
            vector_threshold=self.settings.vector_similarity_threshold,
        )

    def get_session_manager(self) -> SessionManager:
        from scope_assistant.application.use_cases.session_manager import SessionManager

        return SessionManager(
            store=self.get_session_store(),
            clock=self.get_clock(),
            history_window=self.settings.history_window,
        )

    def get_converse_use_case(self) -> Converse:
        from scope_assistant.application.use_cases.converse import Converse

        return Converse(
            sessions=self.get_session_manager(),
            retrieval=self.get_retrieve_use_case(),
            passages=self.get_passage_store(),
            llm=self.get_llm(),
            clock=self.get_clock(),
            telemetry=self.get_telemetry(),
            retrieval_limit=self.settings.retrieval_limit,
            model_name=self.settings.llm_model,
        )

    # ===== Private Builder Methods =====

    def _build_embedding(self) -> EmbeddingPort:
        from scope_assistant.infrastructure.embeddings.openai_embedding_adapter import (
            OpenAIEmbeddingAdapter,
        )

        return OpenAIEmbeddingAdapter(
            base_url=self.settings.openrouter_base_url,
            api_key=self.settings.openrouter_api_key,
            model=self.settings.embedding_model,
            timeout_s=self.settings.embedding_timeout_s,
            app_url=self.settings.app_url,
        )

    def _build_llm(self) -> LLMPort:
        from scope_assistant.infrastructure.llm.openrouter_adapter import (
            OpenRouterCompletionAdapter,
        )

        return OpenRouterCompletionAdapter(
            base_url=self.settings.openrouter_base_url,
            api_key=self.settings.openrouter_api_key,
            model=self.settings.llm_model,
            temperature=self.settings.llm_temperature,
            max_tokens=self.settings.llm_max_tokens,
            timeout_s=self.settings.llm_timeout_s,
            app_url=self.settings.app_url,
        )

    def _build_passage_store(self) -> PassageStorePort:
        """Supports: postgres | memory. Unknown backends fall back to memory."""
        if self.settings.store_backend == "postgres":
            from scope_assistant.infrastructure.stores.postgres_passage_store import (
                PostgresPassageStore,
            )

            return PostgresPassageStore(db=self.get_pg_pool())

        from scope_assistant.infrastructure.stores.memory_stores import InMemoryPassageStore

        return InMemoryPassageStore()

    def _build_session_store(self) -> SessionStorePort:
        if self.settings.store_backend == "postgres":
            from scope_assistant.infrastructure.stores.postgres_session_store import (
                PostgresSessionStore,
            )

            return PostgresSessionStore(db=self.get_pg_pool())

        from scope_assistant.infrastructure.stores.memory_stores import InMemorySessionStore

        return InMemorySessionStore(clock=self.get_clock())

    def _build_telemetry(self) -> TelemetryPort:
        """OpenTelemetry when enabled, otherwise a no-op."""
        from scope_assistant.infrastructure.telemetry.otel_adapter import (
            NoopTelemetry,
            OpenTelemetryAdapter,
            OtelConfig,
        )

        if not self.settings.telemetry_enabled:
            return NoopTelemetry()
        return OpenTelemetryAdapter(
            OtelConfig(
                service_name="scope-assistant",
                otlp_endpoint=self.settings.otlp_endpoint or None,
                environment=self.settings.telemetry_environment,
            )
        )


def build_container(settings: AppSettings | None = None) -> Container:
    """Build the container (settings default to the environment)."""
    return Container(settings)
