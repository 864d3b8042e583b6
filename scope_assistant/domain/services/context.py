"""Pure domain functions for prompt assembly.

Why: The grounding guarantee lives here. The prompt only ever contains
the first `max_passages` results of the current query, and citations are
derived from the same list, so the model cannot be shown or cite anything
outside the query's result set.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from scope_assistant.domain.models import Citation, SearchResult, Turn

MAX_PROMPT_PASSAGES = 10
MAX_CITATIONS = 5
DEFAULT_DOCUMENT_TITLE = "Document"

SYSTEM_INSTRUCTION = (
    "You are an AI assistant for defense software scope documents. "
    "Answer based ONLY on the provided content. Cite section numbers. "
    "If the provided content does not answer the question, say so instead of "
    "speculating. Be professional and precise."
)


@dataclass(frozen=True)
class Prompt:
    system: str
    user: str


def render_history(history: Sequence[Turn]) -> str:
    return "\n".join(f"{t.role.value}: {t.content}" for t in history)


def render_passages(results: Sequence[SearchResult], max_passages: int = MAX_PROMPT_PASSAGES) -> str:
    return "\n\n".join(
        f"[{i}] {r.passage.section_title}\n{r.passage.content}"
        for i, r in enumerate(results[:max_passages], start=1)
    )


def build_prompt(
    document_title: str | None,
    history: Sequence[Turn],
    results: Sequence[SearchResult],
    question: str,
    max_passages: int = MAX_PROMPT_PASSAGES,
) -> Prompt:
    """Build the bounded prompt for one question.

    Args:
        document_title: Title of the scoped document (falls back to "Document")
        history: Chronological turns, already bounded by the session window
        results: Post-fusion, deduplicated results of this query
        question: The literal user question (never the expanded query)
        max_passages: Hard cap on passages shown to the model

    Returns:
        Prompt with the fixed system instruction and the assembled user message
    """
    context = (
        f"Document: {document_title or DEFAULT_DOCUMENT_TITLE}\n\n"
        f"Recent conversation:\n{render_history(history)}\n\n"
        f"Relevant content:\n{render_passages(results, max_passages)}"
    )
    return Prompt(system=SYSTEM_INSTRUCTION, user=f"{context}\n\nQuestion: {question}")


def build_citations(results: Sequence[SearchResult], limit: int = MAX_CITATIONS) -> list[Citation]:
    """Citations for the answer: the head of the same list used for the prompt."""
    return [Citation.from_result(r) for r in results[: min(limit, MAX_PROMPT_PASSAGES)]]
