"""
Explicit wall-clock budget for one ingestion run.

The deadline is computed once; every stage asks the budget whether enough
time remains before it starts. Nothing here cancels in-flight work.
"""

import time
from dataclasses import dataclass, field
from typing import Callable


@dataclass(frozen=True)
class TimeBudget:
    """
    Monotonic deadline with an injectable clock.

    Example:
        >>> budget = TimeBudget.start(10.0)
        >>> budget.has_at_least(3.0)
        True
    """

    started_at: float
    deadline: float
    clock: Callable[[], float] = field(default=time.monotonic, compare=False, repr=False)

    @classmethod
    def start(cls, total_seconds: float, clock: Callable[[], float] = time.monotonic) -> "TimeBudget":
        now = clock()
        return cls(started_at=now, deadline=now + total_seconds, clock=clock)

    def remaining(self) -> float:
        """Seconds left before the deadline, never negative."""
        return max(0.0, self.deadline - self.clock())

    def elapsed(self) -> float:
        return self.clock() - self.started_at

    def expired(self) -> bool:
        return self.remaining() <= 0

    def has_at_least(self, seconds: float) -> bool:
        """Whether a stage needing ``seconds`` may still start."""
        return self.remaining() >= seconds

    def sub_timeout_ms(self, cap_ms: int) -> int:
        """Per-call timeout: the cap, shortened to what is left (at least 1ms)."""
        return max(1, min(cap_ms, int(self.remaining() * 1000)))

    def sub_timeout(self, cap_seconds: float) -> float:
        """Same as ``sub_timeout_ms`` in seconds."""
        return self.sub_timeout_ms(int(cap_seconds * 1000)) / 1000
