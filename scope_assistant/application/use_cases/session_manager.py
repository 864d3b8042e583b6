"""Session manager: resolve or create sessions, bounded history, persistence.

State per session: absent -> created -> active. A supplied session id must
resolve; it is never silently replaced by a new session.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from loguru import logger

from scope_assistant.application.ports.clock_port import ClockPort
from scope_assistant.application.ports.session_store_port import SessionStorePort
from scope_assistant.domain.errors import (
    SessionCreationFailed,
    SessionNotFound,
    SessionStoreError,
)
from scope_assistant.domain.models import Citation, Role, Session, Turn

HISTORY_WINDOW = 5  # exchanges; one exchange = user turn + assistant turn


class SessionManager:
    def __init__(
        self,
        store: SessionStorePort,
        clock: ClockPort,
        history_window: int = HISTORY_WINDOW,
    ) -> None:
        self.store = store
        self.clock = clock
        self.history_window = history_window

    def resolve(self, session_id: str | None, document_id: str, user_id: str) -> Session:
        """Return the session for this query.

        Raises:
            SessionNotFound: `session_id` was given but does not exist.
            SessionCreationFailed: no id was given and both creation paths failed.
        """
        if session_id:
            session = self.store.get_session(session_id)
            if session is None:
                raise SessionNotFound(f"session {session_id} not found")
            return session
        return self._create(document_id, user_id)

    def _create(self, document_id: str, user_id: str) -> Session:
        try:
            session = self.store.create_session_atomic(document_id, user_id)
        except SessionStoreError as ex:
            logger.info("atomic session creation unavailable ({}), using direct insert", ex)
            session = None
        if session is not None:
            logger.info("session {} created via atomic procedure", session.id)
            return session

        try:
            session = self.store.insert_session(document_id, user_id)
        except SessionStoreError as ex:
            logger.error("session creation failed for document {}: {}", document_id, ex)
            raise SessionCreationFailed(f"failed to create session: {ex}") from ex
        logger.info("session {} created via direct insert", session.id)
        return session

    def load_history(self, session: Session) -> list[Turn]:
        """Last `history_window` exchanges in chronological order."""
        newest_first = self.store.recent_turns(session.id, self.history_window * 2)
        return list(reversed(newest_first))

    def history(self, session_id: str, limit: int = 100) -> list[Turn]:
        """Chronological history of an existing session (read endpoint)."""
        session = self.store.get_session(session_id) if session_id else None
        if session is None:
            raise SessionNotFound(f"session {session_id} not found")
        return list(reversed(self.store.recent_turns(session.id, limit)))

    def record_exchange(
        self,
        session: Session,
        question: str,
        answer: str,
        citations: Sequence[Citation],
        metadata: Mapping[str, Any] | None = None,
        asked_at: datetime | None = None,
    ) -> tuple[Turn, Turn]:
        """Persist the user turn and the finalized assistant turn together."""
        user_turn = Turn(
            session_id=session.id,
            role=Role.USER,
            content=question,
            created_at=asked_at or self.clock.now(),
        )
        assistant_turn = Turn(
            session_id=session.id,
            role=Role.ASSISTANT,
            content=answer,
            created_at=self.clock.now(),
            citations=tuple(citations),
            metadata=dict(metadata or {}),
        )
        self.store.append_turns([user_turn, assistant_turn])
        return user_turn, assistant_turn
