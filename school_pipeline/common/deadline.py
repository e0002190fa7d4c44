"""Wall-clock budgets for long harvest runs and single pages."""

from __future__ import annotations

import math
import time
from typing import Callable, Optional


class Deadline:
    """A point in time after which work must stop.

    ``Deadline(None)`` never expires. The clock is injectable so tests can
    move time forward without sleeping.
    """

    def __init__(self, seconds: Optional[float], *, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = None if seconds is None else clock() + max(0.0, seconds)

    @classmethod
    def none(cls) -> "Deadline":
        return cls(None)

    def remaining(self) -> float:
        if self._expires_at is None:
            return math.inf
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def cap(self, seconds: float) -> float:
        """Return ``seconds`` limited to the time left."""
        return min(seconds, self.remaining())

    def __repr__(self) -> str:
        if self._expires_at is None:
            return "Deadline(unbounded)"
        return f"Deadline(remaining={self.remaining():.1f}s)"
