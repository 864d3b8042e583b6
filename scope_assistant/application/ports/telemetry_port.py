"""Counters and histograms emitted by the retrieval and conversation use cases."""

from typing import Any, Protocol


class TelemetryPort(Protocol):
    """Metric sink for the pipeline.

    Names in use: ``retrieval.requests`` and ``retrieval.latency_ms`` (tagged
    with the method that actually ran), ``retrieval.degraded`` when hybrid
    falls back to keyword-only, and ``converse.completed``,
    ``generation.failed`` and ``stream.cancelled`` per conversation turn.
    Tags must stay low-cardinality; never pass message text.
    """

    def incr(self, name: str, tags: dict[str, Any] | None = None) -> None:
        """Bump a counter such as ``retrieval.degraded``."""
        ...

    def observe(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
        """Record one sample, e.g. ``retrieval.latency_ms`` in milliseconds."""
        ...
