# scope_assistant/domain/models.py
# Domain models must be pure (no I/O, no external libs)
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

PREVIEW_CHARS = 150


class RetrievalMethod(str, Enum):
    VECTOR = "vector"
    KEYWORD = "keyword"
    HYBRID = "hybrid"


class SearchSource(str, Enum):
    VECTOR = "vector"
    KEYWORD = "keyword"
    SECTION = "section"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Passage:
    """
    Read-only paragraph of a document, owned by the passage store.

    - passage_id:     stable identifier (the paragraph id in the store)
    - content:        visible paragraph text
    - section_id:     owning section identifier
    - section_title:  human-readable title, e.g. "3. Deadlines"
    - order_index:    ordinal position within the document
    - document_id:    owning document (scope for every search)
    - embedding:      precomputed embedding or None if not loaded
    """

    passage_id: str
    content: str
    section_id: str
    section_title: str
    order_index: int
    document_id: str = ""
    embedding: tuple[float, ...] | None = None


@dataclass(frozen=True)
class SearchResult:
    """Transient projection of a Passage with a ranking weight.

    `similarity` is a cosine score for raw vector hits, 0.8 for keyword hits
    and 1.0 for explicit section hits. After fusion or boosting it is a ranking
    weight only and may exceed 1.0.
    """

    passage: Passage
    similarity: float
    source: SearchSource

    @property
    def passage_id(self) -> str:
        return self.passage.passage_id

    @property
    def section_id(self) -> str:
        return self.passage.section_id

    def with_similarity(self, similarity: float) -> SearchResult:
        return replace(self, similarity=similarity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "paragraph_id": self.passage.passage_id,
            "content": self.passage.content,
            "section_id": self.passage.section_id,
            "section_title": self.passage.section_title,
            "similarity": self.similarity,
            "order_index": self.passage.order_index,
            "source": self.source.value,
        }


@dataclass(frozen=True)
class Citation:
    """Citation reference for a generated answer."""

    passage_id: str
    section_title: str
    preview: str

    @classmethod
    def from_result(cls, result: SearchResult) -> Citation:
        return cls(
            passage_id=result.passage.passage_id,
            section_title=result.passage.section_title,
            preview=result.passage.content[:PREVIEW_CHARS],
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "paragraph_id": self.passage_id,
            "section_title": self.section_title,
            "preview": self.preview,
        }


@dataclass(frozen=True)
class Session:
    id: str
    document_id: str
    user_id: str
    created_at: datetime


@dataclass(frozen=True)
class Turn:
    """One message of a session. Immutable once created."""

    session_id: str
    role: Role
    content: str
    created_at: datetime
    citations: tuple[Citation, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)
