"""Tests for query analysis (acronym expansion, section references)."""

import pytest

from scope_assistant.domain.services.query_analysis import (
    ACRONYM_EXPANSIONS,
    detect_section_numbers,
    expand_query,
    section_title_matches,
)


class TestExpandQuery:
    def test_appends_expansion_for_acronym(self) -> None:
        """A whole-word acronym appends its expansion after the original query."""
        assert expand_query("What is the OIS deadline?") == (
            "What is the OIS deadline? Operational Information System"
        )

    def test_no_acronym_returns_query_unchanged(self) -> None:
        assert expand_query("What is the deadline?") == "What is the deadline?"

    @pytest.mark.parametrize(
        "query",
        ["ois deadline", "OIS and ois and Ois", "Is OIS, or (OIS), late?"],
    )
    def test_case_and_repetition_expand_once(self, query: str) -> None:
        """Expansion appears exactly once regardless of case or repetition."""
        expanded = expand_query(query)
        assert expanded.startswith(query)
        assert expanded.count("Operational Information System") == 1

    def test_partial_word_does_not_match(self) -> None:
        """Acronyms embedded in longer words are not expanded."""
        assert expand_query("CHOISE of SDKs") == "CHOISE of SDKs"

    def test_multiple_acronyms_follow_declaration_order(self) -> None:
        """Expansions are appended in mapping order, not query order."""
        expanded = expand_query("RBAC for the OIS SDK")
        assert expanded == (
            "RBAC for the OIS SDK"
            " Operational Information System"
            " Software Development Kit"
            " Role-Based Access Control"
        )

    def test_custom_mapping(self) -> None:
        assert expand_query("CUI rules", {"CUI": "Controlled Unclassified Information"}) == (
            "CUI rules Controlled Unclassified Information"
        )

    def test_default_mapping_contents(self) -> None:
        assert list(ACRONYM_EXPANSIONS) == ["OIS", "MIS", "SDK", "RBAC"]


class TestDetectSectionNumbers:
    @pytest.mark.parametrize(
        "query,expected",
        [
            ("What does section 3 say?", ["3"]),
            ("SECTION 12 and Section 4", ["12", "4"]),
            ("see 3. and 7.", ["3", "7"]),
            ("section 3 vs 5.", ["3"]),  # explicit form wins over bare numbers
            ("no numbers here", []),
            ("section 2 and section 2 again", ["2"]),
            ("version 2 of the plan", []),
        ],
    )
    def test_detection(self, query: str, expected: list[str]) -> None:
        assert detect_section_numbers(query) == expected

    def test_section_title_prefix_match(self) -> None:
        assert section_title_matches("3. Deadlines", ["3"])
        assert section_title_matches("3.1 Milestones", ["3"])
        assert not section_title_matches("13. Appendix", ["3"])
        assert not section_title_matches("Deadlines", ["3"])
