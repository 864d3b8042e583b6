"""Retrieve passages use case with hybrid fusion and section boosting.

Pipeline:
1. Validate input (query, document, limit)
2. Analyze query (acronym expansion, section references)
3. Fan out: vector search (expanded query), keyword search (literal query)
   and section lookup run concurrently
4. Degrade hybrid to keyword-only when the vector side is unavailable
5. RRF fusion (hybrid) or raw single-source order
6. Section boost, merge explicit section hits, dedup, truncate
"""

from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor

from loguru import logger

from scope_assistant.application.dto.retrieve_dto import RetrievalOutcome, RetrieveRequest
from scope_assistant.application.ports.embedding_port import EmbeddingPort
from scope_assistant.application.ports.passage_store_port import PassageStorePort
from scope_assistant.application.ports.telemetry_port import TelemetryPort
from scope_assistant.domain.errors import DomainError, RetrievalUnavailable, ValidationError
from scope_assistant.domain.models import RetrievalMethod, SearchResult
from scope_assistant.domain.services.query_analysis import detect_section_numbers, expand_query
from scope_assistant.domain.services.ranking import (
    boost_sections,
    merge_section_hits,
    reciprocal_rank_fusion,
    top_k,
)
from scope_assistant.domain.types import Result

VECTOR_SIMILARITY_THRESHOLD = 0.5


class RetrievePassages:
    """
    Application Use-Case orchestrating hybrid retrieval for one document.
    No direct I/O: embedding and search go through ports; errors come back
    as Result[T, E].
    """

    def __init__(
        self,
        embedding: EmbeddingPort,
        passages: PassageStorePort,
        telemetry: TelemetryPort | None = None,
        vector_threshold: float = VECTOR_SIMILARITY_THRESHOLD,
    ) -> None:
        self.embedding = embedding
        self.passages = passages
        self.telemetry = telemetry
        self.vector_threshold = vector_threshold

    def execute(self, req: RetrieveRequest) -> Result[RetrievalOutcome, DomainError]:
        # 1) Validate
        if not req.query or not req.query.strip():
            return Result.failure(ValidationError("query must not be empty"))
        if not req.document_id:
            return Result.failure(ValidationError("documentId is required"))
        if req.limit <= 0:
            return Result.failure(ValidationError("limit must be > 0"))
        try:
            method = RetrievalMethod(req.method)
        except ValueError:
            return Result.failure(ValidationError(f"unknown retrieval method: {req.method}"))

        # 2) Analyze
        expanded = expand_query(req.query)
        section_numbers = detect_section_numbers(req.query)
        started = time.perf_counter()

        # 3) Fan out
        with ThreadPoolExecutor(max_workers=3, thread_name_prefix="retrieval") as pool:
            vec_f: Future[list[SearchResult]] | None = None
            kw_f: Future[list[SearchResult]] | None = None
            sec_f: Future[list[SearchResult]] | None = None
            if method in (RetrievalMethod.VECTOR, RetrievalMethod.HYBRID):
                vec_f = pool.submit(self._vector_search, req.document_id, expanded, req.limit)
            if method in (RetrievalMethod.KEYWORD, RetrievalMethod.HYBRID):
                kw_f = pool.submit(
                    self.passages.keyword_search, req.document_id, req.query, req.limit
                )
            if section_numbers:
                sec_f = pool.submit(
                    self.passages.section_passages, req.document_id, section_numbers
                )

            vec_hits: list[SearchResult] = []
            kw_hits: list[SearchResult] = []
            used = method
            degraded = False

            # 4) Collect, degrading the vector side in hybrid mode
            if vec_f is not None:
                try:
                    vec_hits = vec_f.result()
                except RetrievalUnavailable as ex:
                    if method is not RetrievalMethod.HYBRID:
                        return Result.failure(ex)
                    logger.warning(
                        "vector search unavailable, degrading to keyword-only: {}", ex
                    )
                    self._incr("retrieval.degraded", {"document_id": req.document_id})
                    used = RetrievalMethod.KEYWORD
                    degraded = True
            if kw_f is not None:
                try:
                    kw_hits = kw_f.result()
                except RetrievalUnavailable as ex:
                    return Result.failure(ex)
            section_hits = self._collect_sections(sec_f)

        # 5) Fuse or keep single-source order
        if used is RetrievalMethod.HYBRID:
            primary = reciprocal_rank_fusion(vec_hits, kw_hits)
        elif used is RetrievalMethod.KEYWORD:
            primary = kw_hits
        else:
            primary = vec_hits

        # 6) Boost, merge explicit section hits, dedup, truncate
        boosted = boost_sections(primary, {r.section_id for r in section_hits})
        final = top_k(merge_section_hits(boosted, section_hits), req.limit)

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        self._incr("retrieval.requests", {"method": used.value})
        self._observe("retrieval.latency_ms", elapsed_ms, {"method": used.value})
        logger.debug(
            "retrieved {} passages for document {} via {} in {:.1f} ms",
            len(final),
            req.document_id,
            used.value,
            elapsed_ms,
        )
        return Result.success(
            RetrievalOutcome(
                results=final,
                method=used,
                query=req.query,
                degraded=degraded,
                section_numbers=section_numbers,
            )
        )

    def _vector_search(self, document_id: str, query: str, limit: int) -> list[SearchResult]:
        vector = self.embedding.embed(query)
        return self.passages.vector_search(document_id, vector, limit, self.vector_threshold)

    def _collect_sections(self, fut: Future[list[SearchResult]] | None) -> list[SearchResult]:
        if fut is None:
            return []
        try:
            return fut.result()
        except RetrievalUnavailable as ex:
            # Boosting is an enhancement; ranking proceeds without it.
            logger.warning("section lookup failed, skipping boost: {}", ex)
            return []

    def _incr(self, name: str, tags: dict[str, str]) -> None:
        if self.telemetry is not None:
            self.telemetry.incr(name, tags)

    def _observe(self, name: str, value: float, tags: dict[str, str]) -> None:
        if self.telemetry is not None:
            self.telemetry.observe(name, value, tags)
