"""System clock adapter providing real UTC time.

This is the production implementation of ClockPort.
For tests, inject a fixed or stepping fake clock.
"""

from __future__ import annotations

from datetime import UTC, datetime

from ...application.ports.clock_port import ClockPort


class SystemClock(ClockPort):
    """Production clock adapter returning real system time in UTC."""

    def now(self) -> datetime:  # pragma: no cover - trivial
        return datetime.now(UTC)
