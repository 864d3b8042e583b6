from collections.abc import Sequence
from dataclasses import dataclass
from importlib import import_module
from typing import Any

from scope_assistant.application.ports.passage_store_port import PassageStorePort
from scope_assistant.domain.errors import PassageStoreError
from scope_assistant.domain.models import Passage, SearchResult, SearchSource
from scope_assistant.infrastructure.stores.postgres_base import PostgresPool

KEYWORD_NOMINAL_SIMILARITY = 0.8
SECTION_SIMILARITY = 1.0

# A paragraph may own several embedding rows (one per chunk); only its
# closest chunk is kept so each paragraph holds one rank.
VECTOR_SQL = """
SELECT paragraph_id, content, section_id, title, order_index, similarity
FROM (
    SELECT DISTINCT ON (p.paragraph_id)
           p.paragraph_id, p.content, p.section_id, s.title, p.order_index,
           1 - (e.embedding <=> %(q)s) AS similarity
    FROM embeddings e
    JOIN paragraphs p ON e.paragraph_id = p.paragraph_id
    JOIN sections s ON p.section_id = s.section_id
    WHERE p.document_id = %(doc)s
    ORDER BY p.paragraph_id, e.embedding <=> %(q)s
) best
WHERE similarity >= %(threshold)s
ORDER BY similarity DESC, order_index
LIMIT %(limit)s
"""

KEYWORD_SQL = """
SELECT p.paragraph_id, p.content, p.section_id, s.title, p.order_index
FROM paragraphs p
JOIN sections s ON p.section_id = s.section_id
WHERE p.document_id = %(doc)s
  AND p.search_vector @@ websearch_to_tsquery('english', %(q)s)
ORDER BY ts_rank(p.search_vector, websearch_to_tsquery('english', %(q)s)) DESC,
         p.order_index
LIMIT %(limit)s
"""

SECTION_SQL = """
SELECT p.paragraph_id, p.content, p.section_id, s.title, p.order_index
FROM paragraphs p
JOIN sections s ON p.section_id = s.section_id
WHERE s.document_id = %(doc)s
  AND s.title LIKE ANY(%(patterns)s)
ORDER BY p.order_index
"""

TITLE_SQL = "SELECT title FROM documents WHERE id = %(doc)s"


@dataclass
class PostgresPassageStore(PassageStorePort):
    """Paragraph index in Postgres: pgvector cosine distance + tsvector full text."""

    db: PostgresPool

    def _fetch(self, sql: str, params: dict[str, Any], what: str) -> list[Any]:
        try:
            with self.db.connection() as conn:
                return list(conn.execute(sql, params).fetchall())
        except Exception as ex:  # noqa: BLE001
            raise PassageStoreError(f"{what} failed: {ex}") from ex

    def vector_search(
        self, document_id: str, embedding: Sequence[float], limit: int, threshold: float
    ) -> list[SearchResult]:
        rows = self._fetch(
            VECTOR_SQL,
            {
                "q": import_module("numpy").asarray(embedding, dtype="float32"),
                "doc": document_id,
                "threshold": threshold,
                "limit": limit,
            },
            "vector search",
        )
        return [
            SearchResult(
                passage=self._passage(row, document_id),
                similarity=float(row[5]),
                source=SearchSource.VECTOR,
            )
            for row in rows
        ]

    def keyword_search(self, document_id: str, query: str, limit: int) -> list[SearchResult]:
        rows = self._fetch(
            KEYWORD_SQL, {"q": query, "doc": document_id, "limit": limit}, "keyword search"
        )
        return [
            SearchResult(
                passage=self._passage(row, document_id),
                similarity=KEYWORD_NOMINAL_SIMILARITY,
                source=SearchSource.KEYWORD,
            )
            for row in rows
        ]

    def section_passages(self, document_id: str, section_numbers: Sequence[str]) -> list[SearchResult]:
        numbers = [n for n in section_numbers if n.isdigit()]
        if not numbers:
            return []
        rows = self._fetch(
            SECTION_SQL,
            {"doc": document_id, "patterns": [f"{n}.%" for n in numbers]},
            "section lookup",
        )
        return [
            SearchResult(
                passage=self._passage(row, document_id),
                similarity=SECTION_SIMILARITY,
                source=SearchSource.SECTION,
            )
            for row in rows
        ]

    def document_title(self, document_id: str) -> str | None:
        rows = self._fetch(TITLE_SQL, {"doc": document_id}, "document lookup")
        return str(rows[0][0]) if rows else None

    def close(self) -> None:
        self.db.close()

    @staticmethod
    def _passage(row: Sequence[Any], document_id: str) -> Passage:
        return Passage(
            passage_id=str(row[0]),
            content=row[1] or "",
            section_id=str(row[2]),
            section_title=row[3] or "",
            order_index=int(row[4] or 0),
            document_id=document_id,
        )
