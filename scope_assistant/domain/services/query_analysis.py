"""Pure domain functions for query analysis.

Functions:
- expand_query: append expansions of domain acronyms found in the query
- detect_section_numbers: find explicit section references ("section 3", "3.")

The expanded query is used for retrieval only; the model always sees the
literal question.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

# Declaration order is the order expansions are appended in.
ACRONYM_EXPANSIONS: Mapping[str, str] = {
    "OIS": "Operational Information System",
    "MIS": "Management Information System",
    "SDK": "Software Development Kit",
    "RBAC": "Role-Based Access Control",
}

_SECTION_WORD = re.compile(r"section\s+(\d+)", re.IGNORECASE)
_BARE_NUMBER = re.compile(r"\b(\d+)\.")


def expand_query(query: str, expansions: Mapping[str, str] = ACRONYM_EXPANSIONS) -> str:
    """Append the expansion of every acronym that occurs as a whole word.

    Args:
        query: Raw user query
        expansions: Ordered acronym -> expansion mapping

    Returns:
        The query followed by one space-separated expansion per matching
        acronym, each at most once, in mapping order.

    Examples:
        >>> expand_query("What is the OIS deadline?")
        'What is the OIS deadline? Operational Information System'
        >>> expand_query("ois vs OIS")
        'ois vs OIS Operational Information System'
    """
    expanded = query
    for acronym, full in expansions.items():
        if re.search(rf"\b{re.escape(acronym)}\b", query, re.IGNORECASE):
            expanded += f" {full}"
    return expanded


def detect_section_numbers(query: str) -> list[str]:
    """Return the section numbers explicitly referenced in the query.

    "section <n>" references take precedence; the bare "<n>." form is only
    consulted when the query names no section explicitly. Numbers are unique
    and keep first-seen order.
    """
    numbers = _SECTION_WORD.findall(query) or _BARE_NUMBER.findall(query)
    return list(dict.fromkeys(numbers))


def section_title_matches(title: str, numbers: list[str]) -> bool:
    """True when the section title starts with "<n>." for any detected number."""
    return any(title.startswith(f"{n}.") for n in numbers)
