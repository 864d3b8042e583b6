"""Domain errors (typed) for the grounding pipeline.

Why: Unified error family for the Application layer, without Infra leaks.
Adapters translate library exceptions into these; the HTTP layer maps them
to status codes.
"""

from dataclasses import dataclass


class DomainError(Exception):
    """Base class for domain-specific errors."""


class ValidationError(DomainError):
    """Missing or invalid input, rejected before any collaborator call."""


class SessionNotFound(DomainError):
    """An explicit session id did not resolve to a stored session."""


class SessionCreationFailed(DomainError):
    """Both the atomic and the fallback session creation paths failed."""


class SessionStoreError(DomainError):
    """Session/turn store backend failed or is misconfigured."""


class RetrievalUnavailable(DomainError):
    """Embedding or search collaborator unreachable."""


class EmbeddingError(RetrievalUnavailable):
    """Embedding backend failed or is misconfigured."""


class PassageStoreError(RetrievalUnavailable):
    """Passage store (vector/full-text/section lookup) failed."""


class GenerationFailed(DomainError):
    """Completion provider failed or the stream ended without its terminal marker."""


@dataclass(frozen=True)
class MalformedStreamFrame(DomainError):
    """A single undecodable event line; skipped by the decoder, never escalated."""

    line: str
    reason: str = ""
