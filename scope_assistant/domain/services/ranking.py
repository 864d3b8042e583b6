# scope_assistant/domain/services/ranking.py
# Pure domain services: no I/O, deterministic, no external libraries.
from __future__ import annotations

from collections.abc import Iterable, Sequence

from scope_assistant.domain.models import SearchResult

RRF_K = 60
SECTION_BOOST = 1.5
DEFAULT_LIMIT = 20


def reciprocal_rank_fusion(
    vector_results: Sequence[SearchResult],
    keyword_results: Sequence[SearchResult],
    k: int = RRF_K,
) -> list[SearchResult]:
    """
    Merge two ranked lists with Reciprocal Rank Fusion.

    - Ranks are zero-based: the head of a list contributes 1/k.
    - Within one list a passage counts once, at its first (best) rank.
    - A passage present in both lists sums both contributions.
    - The first-seen result object is kept (vector before keyword); only its
      similarity is replaced by the fused score.
    - Output is sorted by fused score, descending; ties keep first-seen order.
    """
    fused: dict[str, tuple[SearchResult, float]] = {}
    for ranked in (vector_results, keyword_results):
        counted: set[str] = set()
        for rank, r in enumerate(ranked):
            if r.passage_id in counted:
                continue
            counted.add(r.passage_id)
            contribution = 1.0 / (rank + k)
            if r.passage_id in fused:
                kept, score = fused[r.passage_id]
                fused[r.passage_id] = (kept, score + contribution)
            else:
                fused[r.passage_id] = (r, contribution)

    ordered = sorted(fused.values(), key=lambda item: item[1], reverse=True)
    return [r.with_similarity(score) for r, score in ordered]


def boost_sections(
    results: Sequence[SearchResult],
    section_ids: Iterable[str],
    factor: float = SECTION_BOOST,
) -> list[SearchResult]:
    """Multiply the similarity of results whose section was explicitly cited.

    Boosted values are ranking weights and can exceed 1.0.
    """
    cited = set(section_ids)
    if not cited:
        return list(results)
    return [
        r.with_similarity(r.similarity * factor) if r.section_id in cited else r
        for r in results
    ]


def merge_section_hits(
    primary: Sequence[SearchResult],
    section_hits: Sequence[SearchResult],
) -> list[SearchResult]:
    """Join section hits into the boosted primary pool and re-rank.

    Stable sort: on equal weights primary entries stay ahead of section
    entries appended after them.
    """
    pool = [*primary, *section_hits]
    pool.sort(key=lambda r: r.similarity, reverse=True)
    return pool


def deduplicate(results: Sequence[SearchResult]) -> list[SearchResult]:
    """Drop repeated passages; the first occurrence wins and order is kept."""
    seen: set[str] = set()
    out: list[SearchResult] = []
    for r in results:
        if r.passage_id in seen:
            continue
        seen.add(r.passage_id)
        out.append(r)
    return out


def top_k(results: Sequence[SearchResult], limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
    """Deduplicate first, then truncate, so duplicates never starve the result set."""
    if limit <= 0:
        return []
    return deduplicate(results)[:limit]
