"""In-memory passage and session stores.

Why: Local development and tests run the full pipeline without a database.
Semantics follow the Postgres adapters: cosine threshold for vector search,
websearch-style AND matching for keyword search, "<n>." title prefix for
section lookup.
"""

from __future__ import annotations

import re
import threading
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from scope_assistant.application.ports.clock_port import ClockPort
from scope_assistant.application.ports.passage_store_port import PassageStorePort
from scope_assistant.application.ports.session_store_port import SessionStorePort
from scope_assistant.domain.errors import SessionStoreError
from scope_assistant.domain.models import Passage, SearchResult, SearchSource, Session, Turn
from scope_assistant.domain.services.query_analysis import section_title_matches
from scope_assistant.domain.similarity import cosine
from scope_assistant.infrastructure.stores.postgres_passage_store import (
    KEYWORD_NOMINAL_SIMILARITY,
    SECTION_SIMILARITY,
)

_TOKEN = re.compile(r"[a-z0-9]+")
_PHRASE = re.compile(r'"([^"]*)"')
_STOP_WORDS = frozenset(
    "a an and are as at be by for from how in is it of on or that the this to was what "
    "when where which who why with".split()
)


def _tokens(text: str) -> list[str]:
    return _TOKEN.findall(text.lower())


def parse_websearch(query: str) -> tuple[list[str], list[str], list[str]]:
    """Split a websearch query into (required terms, phrases, excluded terms)."""
    phrases = [p.strip().lower() for p in _PHRASE.findall(query) if p.strip()]
    rest = _PHRASE.sub(" ", query)
    required: list[str] = []
    excluded: list[str] = []
    for word in rest.split():
        target = excluded if word.startswith("-") else required
        target.extend(t for t in _tokens(word) if t not in _STOP_WORDS)
    return required, phrases, excluded


@dataclass
class InMemoryPassageStore(PassageStorePort):
    passages: list[Passage] = field(default_factory=list)
    titles: dict[str, str] = field(default_factory=dict)

    def add(self, passages: Iterable[Passage]) -> None:
        self.passages.extend(passages)

    def _scoped(self, document_id: str) -> list[Passage]:
        return sorted(
            (p for p in self.passages if p.document_id == document_id),
            key=lambda p: p.order_index,
        )

    def vector_search(
        self, document_id: str, embedding: Sequence[float], limit: int, threshold: float
    ) -> list[SearchResult]:
        scored = [
            (cosine(embedding, p.embedding), p)
            for p in self._scoped(document_id)
            if p.embedding is not None
        ]
        hits = [(s, p) for s, p in scored if s >= threshold]
        hits.sort(key=lambda sp: sp[0], reverse=True)
        return [
            SearchResult(passage=p, similarity=s, source=SearchSource.VECTOR)
            for s, p in hits[:limit]
        ]

    def keyword_search(self, document_id: str, query: str, limit: int) -> list[SearchResult]:
        required, phrases, excluded = parse_websearch(query)
        if not required and not phrases:
            return []
        ranked: list[tuple[int, Passage]] = []
        for p in self._scoped(document_id):
            text = p.content.lower()
            toks = _tokens(p.content)
            if any(t in toks for t in excluded):
                continue
            if not all(t in toks for t in required) or not all(ph in text for ph in phrases):
                continue
            rank = sum(toks.count(t) for t in required) + sum(text.count(ph) for ph in phrases)
            ranked.append((rank, p))
        ranked.sort(key=lambda rp: rp[0], reverse=True)
        return [
            SearchResult(passage=p, similarity=KEYWORD_NOMINAL_SIMILARITY, source=SearchSource.KEYWORD)
            for _, p in ranked[:limit]
        ]

    def section_passages(self, document_id: str, section_numbers: Sequence[str]) -> list[SearchResult]:
        numbers = list(section_numbers)
        return [
            SearchResult(passage=p, similarity=SECTION_SIMILARITY, source=SearchSource.SECTION)
            for p in self._scoped(document_id)
            if numbers and section_title_matches(p.section_title, numbers)
        ]

    def document_title(self, document_id: str) -> str | None:
        return self.titles.get(document_id)


@dataclass
class InMemorySessionStore(SessionStorePort):
    clock: ClockPort
    atomic_available: bool = True
    sessions: dict[str, Session] = field(default_factory=dict)
    turns: dict[str, list[Turn]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def create_session_atomic(self, document_id: str, user_id: str) -> Session | None:
        if not self.atomic_available:
            raise SessionStoreError("create_chat_session is not available")
        return self.insert_session(document_id, user_id)

    def insert_session(self, document_id: str, user_id: str) -> Session:
        session = Session(
            id=str(uuid.uuid4()),
            document_id=document_id,
            user_id=user_id,
            created_at=self.clock.now(),
        )
        with self._lock:
            self.sessions[session.id] = session
            self.turns[session.id] = []
        return session

    def get_session(self, session_id: str) -> Session | None:
        with self._lock:
            return self.sessions.get(session_id)

    def recent_turns(self, session_id: str, limit: int) -> list[Turn]:
        with self._lock:
            stored = list(self.turns.get(session_id, []))
        return list(reversed(stored))[:limit]

    def append_turns(self, turns: list[Turn]) -> None:
        with self._lock:
            for t in turns:
                if t.session_id not in self.sessions:
                    raise SessionStoreError(f"unknown session {t.session_id}")
            for t in turns:
                self.turns[t.session_id].append(t)
