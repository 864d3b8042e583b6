from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from scope_assistant.domain.models import SearchResult

__all__ = ["PassageStorePort", "SearchResult"]


@runtime_checkable
class PassageStorePort(Protocol):
    """Read-only access to the paragraph index of the document store.

    Every operation is scoped to one document. Failures raise
    PassageStoreError (a RetrievalUnavailable).
    """

    def vector_search(
        self, document_id: str, embedding: Sequence[float], limit: int, threshold: float
    ) -> list[SearchResult]:
        """Passages with similarity >= threshold, descending, at most `limit`."""
        ...

    def keyword_search(self, document_id: str, query: str, limit: int) -> list[SearchResult]:
        """Websearch-style full-text hits in native relevance order, similarity 0.8."""
        ...

    def section_passages(self, document_id: str, section_numbers: Sequence[str]) -> list[SearchResult]:
        """All passages of sections titled "<n>." for any n, similarity 1.0."""
        ...

    def document_title(self, document_id: str) -> str | None: ...
