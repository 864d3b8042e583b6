"""Session store port.

Sessions and turns live in the relational store owned by the rest
of the application. The pipeline only talks to it through this port, and only
the SessionManager use case holds a reference to it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from scope_assistant.domain.models import Session, Turn


class SessionStorePort(ABC):
    @abstractmethod
    def create_session_atomic(self, document_id: str, user_id: str) -> Session | None:
        """Create via the store-side atomic procedure.

        Returns:
            The created session, or None when the procedure returned no row.

        Raises:
            SessionStoreError: If the procedure is unavailable or fails.
        """
        ...

    @abstractmethod
    def insert_session(self, document_id: str, user_id: str) -> Session:
        """Fallback plain insert. Raises SessionStoreError on failure."""
        ...

    @abstractmethod
    def get_session(self, session_id: str) -> Session | None: ...

    @abstractmethod
    def recent_turns(self, session_id: str, limit: int) -> list[Turn]:
        """Most recent turns, newest first, at most `limit`."""
        ...

    @abstractmethod
    def append_turns(self, turns: list[Turn]) -> None:
        """Persist turns in the given order, all or nothing."""
        ...
