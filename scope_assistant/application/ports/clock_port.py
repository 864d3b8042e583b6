from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime


class ClockPort(ABC):
    """Source of session and turn timestamps.

    The user turn is stamped when the question arrives and the assistant turn
    when the answer is persisted, so history ordering depends on this clock.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware UTC now."""
        ...
