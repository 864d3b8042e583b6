"""Converse use case: grounded answers, batched or streamed.

Pipeline:
1. Validate input (message, document, user)
2. Resolve or create the session, load bounded history
3. Hybrid retrieval on the literal message (expansion happens inside)
4. Assemble the bounded prompt; derive citations from the same result set
5. Generate (complete_sync or complete_stream)
6. Persist the user turn and the finalized assistant turn

Steps 1-4 run eagerly for both modes so that validation, session and
retrieval errors surface before any streaming starts.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger

from scope_assistant.application.dto.converse_dto import (
    GENERATION_FAILED_MESSAGE,
    ConverseAnswer,
    ConverseRequest,
    ConverseStream,
    StreamEvent,
)
from scope_assistant.application.dto.retrieve_dto import RetrievalOutcome, RetrieveRequest
from scope_assistant.application.ports.clock_port import ClockPort
from scope_assistant.application.ports.llm_port import ChatMessage, LLMPort
from scope_assistant.application.ports.passage_store_port import PassageStorePort
from scope_assistant.application.ports.telemetry_port import TelemetryPort
from scope_assistant.application.use_cases.retrieve_passages import RetrievePassages
from scope_assistant.application.use_cases.session_manager import SessionManager
from scope_assistant.domain.errors import (
    DomainError,
    GenerationFailed,
    PassageStoreError,
    ValidationError,
)
from scope_assistant.domain.models import Citation, RetrievalMethod, Session
from scope_assistant.domain.services.context import build_citations, build_prompt
from scope_assistant.domain.types import Result

EMPTY_RESPONSE_MESSAGE = "No response generated."


@dataclass(frozen=True)
class _PreparedTurn:
    session: Session
    question: str
    asked_at: datetime
    outcome: RetrievalOutcome
    messages: list[ChatMessage]
    citations: list[Citation]


class Converse:
    """
    Application Use-Case answering one message of a document conversation.
    Only ports are touched; errors are returned as Result[T, E].
    """

    def __init__(
        self,
        sessions: SessionManager,
        retrieval: RetrievePassages,
        passages: PassageStorePort,
        llm: LLMPort,
        clock: ClockPort,
        telemetry: TelemetryPort | None = None,
        retrieval_limit: int = 20,
        model_name: str | None = None,
    ) -> None:
        self.sessions = sessions
        self.retrieval = retrieval
        self.passages = passages
        self.llm = llm
        self.clock = clock
        self.telemetry = telemetry
        self.retrieval_limit = retrieval_limit
        self.model_name = model_name

    # ===== Batched =====

    def execute(self, req: ConverseRequest) -> Result[ConverseAnswer, DomainError]:
        prepared = self._prepare(req)
        if not prepared.ok:
            assert prepared.error is not None
            return Result.failure(prepared.error)
        assert prepared.value is not None
        turn = prepared.value

        started = time.perf_counter()
        try:
            response = self.llm.complete_sync(turn.messages)
        except GenerationFailed as ex:
            self._generation_failed(turn.session, ex)
            return Result.success(
                ConverseAnswer(
                    content=GENERATION_FAILED_MESSAGE,
                    sources=[],
                    session_id=turn.session.id,
                    failed=True,
                )
            )

        text = response.text or EMPTY_RESPONSE_MESSAGE
        try:
            self._persist(turn, text, started, model=response.model)
        except DomainError as ex:
            return Result.failure(ex)
        return Result.success(
            ConverseAnswer(content=text, sources=turn.citations, session_id=turn.session.id)
        )

    # ===== Streaming =====

    def open_stream(
        self, req: ConverseRequest, cancel: threading.Event | None = None
    ) -> Result[ConverseStream, DomainError]:
        """Prepare a streamed answer; generation starts when events are iterated.

        Args:
            req: Converse request
            cancel: Set by the caller when the client disconnects. Nothing is
                persisted for a cancelled stream.
        """
        prepared = self._prepare(req)
        if not prepared.ok:
            assert prepared.error is not None
            return Result.failure(prepared.error)
        assert prepared.value is not None
        turn = prepared.value
        return Result.success(
            ConverseStream(session_id=turn.session.id, events=self._stream_events(turn, cancel))
        )

    def _stream_events(
        self, turn: _PreparedTurn, cancel: threading.Event | None
    ) -> Iterator[StreamEvent]:
        parts: list[str] = []
        started = time.perf_counter()
        deltas = self.llm.complete_stream(turn.messages, cancel=cancel)
        try:
            for delta in deltas:
                if cancel is not None and cancel.is_set():
                    break
                parts.append(delta)
                yield StreamEvent(chunk=delta)
        except GenerationFailed as ex:
            self._generation_failed(turn.session, ex)
            yield StreamEvent(chunk=GENERATION_FAILED_MESSAGE)
            yield StreamEvent(
                sources=[], session_id=turn.session.id, done=True, error="generation_failed"
            )
            return
        finally:
            close = getattr(deltas, "close", None)
            if close is not None:
                close()

        if cancel is not None and cancel.is_set():
            logger.info(
                "stream for session {} cancelled after {} deltas, nothing persisted",
                turn.session.id,
                len(parts),
            )
            self._incr("stream.cancelled")
            return

        text = "".join(parts)
        if not text:
            text = EMPTY_RESPONSE_MESSAGE
            yield StreamEvent(chunk=text)
        try:
            self._persist(turn, text, started, model=self.model_name)
        except DomainError as ex:
            logger.error("could not persist streamed answer for session {}: {}", turn.session.id, ex)
            yield StreamEvent(
                sources=[], session_id=turn.session.id, done=True, error="persistence_failed"
            )
            return
        yield StreamEvent(sources=turn.citations, session_id=turn.session.id, done=True)

    # ===== Shared steps =====

    def _prepare(self, req: ConverseRequest) -> Result[_PreparedTurn, DomainError]:
        # 1) Validate
        if not req.message or not req.message.strip():
            return Result.failure(ValidationError("message must not be empty"))
        if not req.document_id:
            return Result.failure(ValidationError("documentId is required"))
        if not req.user_id:
            return Result.failure(ValidationError("userId is required"))

        asked_at = self.clock.now()

        # 2) Session + bounded history
        try:
            session = self.sessions.resolve(req.session_id, req.document_id, req.user_id)
            history = self.sessions.load_history(session)
        except DomainError as ex:
            return Result.failure(ex)

        # 3) Retrieval
        retrieved = self.retrieval.execute(
            RetrieveRequest(
                query=req.message,
                document_id=req.document_id,
                method=RetrievalMethod.HYBRID,
                limit=self.retrieval_limit,
            )
        )
        if not retrieved.ok:
            assert retrieved.error is not None
            return Result.failure(retrieved.error)
        assert retrieved.value is not None
        outcome = retrieved.value

        # 4) Prompt + citations from the same result set
        prompt = build_prompt(self._document_title(req.document_id), history, outcome.results, req.message)
        return Result.success(
            _PreparedTurn(
                session=session,
                question=req.message,
                asked_at=asked_at,
                outcome=outcome,
                messages=[
                    ChatMessage(role="system", content=prompt.system),
                    ChatMessage(role="user", content=prompt.user),
                ],
                citations=build_citations(outcome.results),
            )
        )

    def _document_title(self, document_id: str) -> str | None:
        try:
            return self.passages.document_title(document_id)
        except PassageStoreError as ex:
            logger.warning("document title lookup failed for {}: {}", document_id, ex)
            return None

    def _persist(self, turn: _PreparedTurn, text: str, started: float, model: str | None) -> None:
        latency_ms = int((time.perf_counter() - started) * 1000)
        metadata: dict[str, Any] = {
            "retrieval_method": turn.outcome.method.value,
            "latency_ms": latency_ms,
        }
        if turn.outcome.degraded:
            metadata["retrieval_degraded"] = True
        if model:
            metadata["model"] = model
        self.sessions.record_exchange(
            turn.session,
            question=turn.question,
            answer=text,
            citations=turn.citations,
            metadata=metadata,
            asked_at=turn.asked_at,
        )
        self._incr("converse.completed")

    def _generation_failed(self, session: Session, ex: GenerationFailed) -> None:
        logger.error("generation failed for session {}: {}", session.id, ex)
        self._incr("generation.failed")

    def _incr(self, name: str) -> None:
        if self.telemetry is not None:
            self.telemetry.incr(name)
