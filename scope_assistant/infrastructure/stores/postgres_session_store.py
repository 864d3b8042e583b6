from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from importlib import import_module
from typing import Any

from scope_assistant.application.ports.session_store_port import SessionStorePort
from scope_assistant.domain.errors import SessionStoreError
from scope_assistant.domain.models import Citation, Role, Session, Turn
from scope_assistant.infrastructure.stores.postgres_base import PostgresPool

SESSION_COLUMNS = "id, document_id, user_id, created_at"

CREATE_RPC_SQL = f"SELECT {SESSION_COLUMNS} FROM create_chat_session(%(doc)s, %(user)s)"
INSERT_SQL = (
    "INSERT INTO chat_sessions (document_id, user_id) VALUES (%(doc)s, %(user)s) "
    f"RETURNING {SESSION_COLUMNS}"
)
GET_SQL = f"SELECT {SESSION_COLUMNS} FROM chat_sessions WHERE id = %(id)s"
RECENT_TURNS_SQL = """
SELECT session_id, role, content, sources, metadata, created_at
FROM chat_messages
WHERE session_id = %(id)s
ORDER BY created_at DESC
LIMIT %(limit)s
"""
INSERT_TURN_SQL = """
INSERT INTO chat_messages (session_id, role, content, sources, metadata, created_at)
VALUES (%(session)s, %(role)s, %(content)s, %(sources)s, %(metadata)s, %(created_at)s)
"""


@dataclass
class PostgresSessionStore(SessionStorePort):
    """chat_sessions / chat_messages tables of the application database."""

    db: PostgresPool

    def _fetchone(self, sql: str, params: dict[str, Any], what: str) -> Any:
        try:
            with self.db.connection() as conn:
                return conn.execute(sql, params).fetchone()
        except Exception as ex:  # noqa: BLE001
            raise SessionStoreError(f"{what} failed: {ex}") from ex

    def create_session_atomic(self, document_id: str, user_id: str) -> Session | None:
        row = self._fetchone(
            CREATE_RPC_SQL, {"doc": document_id, "user": user_id}, "create_chat_session"
        )
        return self._session(row) if row else None

    def insert_session(self, document_id: str, user_id: str) -> Session:
        row = self._fetchone(INSERT_SQL, {"doc": document_id, "user": user_id}, "session insert")
        if not row:
            raise SessionStoreError("session insert returned no row")
        return self._session(row)

    def get_session(self, session_id: str) -> Session | None:
        try:
            uuid.UUID(session_id)
        except ValueError:
            return None  # ids are UUIDs; anything else cannot exist
        row = self._fetchone(GET_SQL, {"id": session_id}, "session lookup")
        return self._session(row) if row else None

    def recent_turns(self, session_id: str, limit: int) -> list[Turn]:
        try:
            with self.db.connection() as conn:
                rows = conn.execute(RECENT_TURNS_SQL, {"id": session_id, "limit": limit}).fetchall()
        except Exception as ex:  # noqa: BLE001
            raise SessionStoreError(f"history lookup failed: {ex}") from ex
        roles = {r.value for r in Role}
        return [self._turn(row) for row in rows if row[1] in roles]

    def append_turns(self, turns: list[Turn]) -> None:
        try:
            Jsonb = import_module("psycopg.types.json").Jsonb
            with self.db.connection() as conn, conn.transaction():
                for t in turns:
                    conn.execute(
                        INSERT_TURN_SQL,
                        {
                            "session": t.session_id,
                            "role": t.role.value,
                            "content": t.content,
                            "sources": Jsonb([c.to_dict() for c in t.citations]),
                            "metadata": Jsonb(dict(t.metadata)),
                            "created_at": t.created_at,
                        },
                    )
        except Exception as ex:  # noqa: BLE001
            raise SessionStoreError(f"turn insert failed: {ex}") from ex

    def close(self) -> None:
        self.db.close()

    @staticmethod
    def _session(row: Sequence[Any]) -> Session:
        return Session(id=str(row[0]), document_id=str(row[1]), user_id=str(row[2]), created_at=row[3])

    @staticmethod
    def _turn(row: Sequence[Any]) -> Turn:
        sources = row[3] or []
        return Turn(
            session_id=str(row[0]),
            role=Role(row[1]),
            content=row[2],
            citations=tuple(
                Citation(
                    passage_id=str(s.get("paragraph_id", "")),
                    section_title=s.get("section_title", ""),
                    preview=s.get("preview", ""),
                )
                for s in sources
            ),
            metadata=row[4] or {},
            created_at=row[5],
        )
