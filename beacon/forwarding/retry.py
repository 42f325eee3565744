"""Bounded exponential backoff for forwarding jobs."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt


@dc.dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt budget and doubling delay between attempts.

    With the defaults, attempts are separated by 2, 4, 8 and 16 seconds
    and a fifth failure exhausts the job.

    Attributes
    ----------
    max_attempts
        Total attempts, including the first.
    base_delay
        Delay after the first failed attempt.

    """

    max_attempts: int = 5
    base_delay: dt.timedelta = dt.timedelta(seconds=2)

    def __post_init__(self) -> None:
        """Reject budgets that would never attempt delivery."""
        if self.max_attempts < 1:
            msg = f"max_attempts must be positive, got: {self.max_attempts}"
            raise ValueError(msg)

    def delay_for(self, attempt: int) -> dt.timedelta:
        """Return the wait after failed attempt number ``attempt`` (1-based)."""
        return self.base_delay * (2 ** (max(attempt, 1) - 1))

    def exhausted(self, attempts: int) -> bool:
        """Return True once ``attempts`` have used the whole budget."""
        return attempts >= self.max_attempts
