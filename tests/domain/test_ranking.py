"""Tests for domain ranking services (RRF, section boost, dedup, top-k)."""

import pytest

from scope_assistant.domain.models import Passage, SearchResult, SearchSource
from scope_assistant.domain.services.ranking import (
    RRF_K,
    SECTION_BOOST,
    boost_sections,
    deduplicate,
    merge_section_hits,
    reciprocal_rank_fusion,
    top_k,
)


# Helper to create test results
def make_result(
    id_: str,
    similarity: float,
    section_id: str = "s1",
    source: SearchSource = SearchSource.VECTOR,
) -> SearchResult:
    return SearchResult(
        passage=Passage(
            passage_id=id_,
            content=f"Text for {id_}",
            section_id=section_id,
            section_title=f"Title of {section_id}",
            order_index=0,
        ),
        similarity=similarity,
        source=source,
    )


class TestReciprocalRankFusion:
    def test_single_list_scores_use_zero_based_ranks(self) -> None:
        """Head of a list contributes 1/k, the next 1/(k+1)."""
        fused = reciprocal_rank_fusion([make_result("a", 0.9), make_result("b", 0.7)], [])
        assert [r.passage_id for r in fused] == ["a", "b"]
        assert fused[0].similarity == pytest.approx(1 / 60)
        assert fused[1].similarity == pytest.approx(1 / 61)

    def test_scenario_shared_passage_ranks_first(self) -> None:
        """vector=[P1,P2,P3], keyword=[P2,P4] fuses to [P2,P1,P4,P3]."""
        vector = [make_result("P1", 0.9), make_result("P2", 0.8), make_result("P3", 0.7)]
        keyword = [
            make_result("P2", 0.8, source=SearchSource.KEYWORD),
            make_result("P4", 0.8, source=SearchSource.KEYWORD),
        ]
        fused = reciprocal_rank_fusion(vector, keyword)

        assert [r.passage_id for r in fused] == ["P2", "P1", "P4", "P3"]
        weights = {r.passage_id: r.similarity for r in fused}
        assert weights["P2"] == pytest.approx(1 / 61 + 1 / 60)
        assert weights["P1"] == pytest.approx(1 / 60)
        assert weights["P4"] == pytest.approx(1 / 61)
        assert weights["P3"] == pytest.approx(1 / 62)

    def test_first_seen_result_is_kept(self) -> None:
        """A passage in both lists keeps its vector-side source."""
        fused = reciprocal_rank_fusion(
            [make_result("a", 0.9)], [make_result("a", 0.8, source=SearchSource.KEYWORD)]
        )
        assert len(fused) == 1
        assert fused[0].source is SearchSource.VECTOR

    def test_repeated_passage_in_one_list_counts_once(self) -> None:
        """A passage listed twice in the vector list keeps only its best rank."""
        vector = [make_result("P1", 0.9), make_result("P1", 0.7)]
        keyword = [
            make_result("P2", 0.8, source=SearchSource.KEYWORD),
            make_result("P1", 0.8, source=SearchSource.KEYWORD),
        ]
        weights = {r.passage_id: r.similarity for r in reciprocal_rank_fusion(vector, keyword)}

        assert weights["P1"] == pytest.approx(1 / 60 + 1 / 61)
        assert weights["P2"] == pytest.approx(1 / 60)

    def test_empty_inputs(self) -> None:
        assert reciprocal_rank_fusion([], []) == []

    def test_custom_k(self) -> None:
        fused = reciprocal_rank_fusion([make_result("a", 0.9)], [], k=1)
        assert fused[0].similarity == pytest.approx(1.0)

    def test_default_k(self) -> None:
        assert RRF_K == 60


class TestBoostSections:
    def test_boost_multiplies_matching_sections(self) -> None:
        results = [make_result("a", 0.6, "s3"), make_result("b", 0.5, "s4")]
        boosted = boost_sections(results, ["s3"])
        assert boosted[0].similarity == pytest.approx(0.6 * SECTION_BOOST)
        assert boosted[1].similarity == pytest.approx(0.5)

    def test_boost_may_exceed_one(self) -> None:
        boosted = boost_sections([make_result("a", 0.9, "s3")], {"s3"})
        assert boosted[0].similarity == pytest.approx(1.35)

    @pytest.mark.parametrize("similarity", [0.0, 0.01, 0.5, 1.0])
    def test_boost_never_decreases(self, similarity: float) -> None:
        boosted = boost_sections([make_result("a", similarity, "s3")], ["s3"])
        assert boosted[0].similarity >= similarity

    def test_no_sections_returns_copy(self) -> None:
        results = [make_result("a", 0.6)]
        boosted = boost_sections(results, [])
        assert boosted == results
        assert boosted is not results


class TestMergeSectionHits:
    def test_section_hits_join_and_rerank(self) -> None:
        primary = [make_result("a", 0.03), make_result("b", 0.02)]
        hits = [make_result("c", 1.0, source=SearchSource.SECTION)]
        merged = merge_section_hits(primary, hits)
        assert [r.passage_id for r in merged] == ["c", "a", "b"]

    def test_ties_keep_primary_first(self) -> None:
        primary = [make_result("a", 1.0)]
        hits = [make_result("b", 1.0, source=SearchSource.SECTION)]
        assert [r.passage_id for r in merge_section_hits(primary, hits)] == ["a", "b"]


class TestDeduplicate:
    def test_first_occurrence_wins(self) -> None:
        results = [make_result("a", 0.9), make_result("b", 0.8), make_result("a", 0.1)]
        deduped = deduplicate(results)
        assert [r.passage_id for r in deduped] == ["a", "b"]
        assert deduped[0].similarity == 0.9

    def test_idempotent(self) -> None:
        results = [make_result("a", 0.9), make_result("a", 0.8), make_result("b", 0.7)]
        once = deduplicate(results)
        assert deduplicate(once) == once


class TestTopK:
    def test_dedup_before_truncation(self) -> None:
        """25 results with 6 duplicates and limit 20 keep 19 distinct passages."""
        distinct = [make_result(f"p{i}", 1.0 - i * 0.01) for i in range(19)]
        duplicates = [make_result(f"p{i}", 0.01) for i in range(6)]
        result = top_k(distinct + duplicates, limit=20)

        assert len(result) == 19
        assert len({r.passage_id for r in result}) == 19

    def test_truncates_to_limit(self) -> None:
        results = [make_result(f"p{i}", 0.5) for i in range(30)]
        assert len(top_k(results)) == 20
        assert len(top_k(results, limit=5)) == 5

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit(self, limit: int) -> None:
        assert top_k([make_result("a", 0.5)], limit=limit) == []
