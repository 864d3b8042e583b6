# scope_assistant/application/dto/retrieve_dto.py
from __future__ import annotations

from dataclasses import dataclass, field

from scope_assistant.domain.models import RetrievalMethod, SearchResult


@dataclass(frozen=True)
class RetrieveRequest:
    """
    DTO for retrieving passages of one document.

    - query: literal user query (non-empty); expansion happens inside the use case
    - document_id: scope of every search
    - method: vector | keyword | hybrid
    - limit: number of results after deduplication
    """

    query: str
    document_id: str
    method: RetrievalMethod = RetrievalMethod.HYBRID
    limit: int = 20


@dataclass(frozen=True)
class RetrievalOutcome:
    """Ranked results plus the method that was actually used."""

    results: list[SearchResult]
    method: RetrievalMethod
    query: str
    degraded: bool = False
    section_numbers: list[str] = field(default_factory=list)
