"""Per-surface sliding-window rate-limit policies."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt

__all__ = [
    "ADMIN_POLICY",
    "AUTH_POLICY",
    "CONVERSIONS_POLICY",
    "PUBLIC_POLICY",
    "TRACKING_POLICY",
    "RateLimitPolicy",
]


@dc.dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    """Sliding-window limit applied to one admission surface.

    Attributes
    ----------
    window
        Length of the sliding window.
    max_requests
        Requests admitted per identity within ``window``.
    namespace
        Key prefix that keeps counters for different surfaces apart.

    """

    window: dt.timedelta
    max_requests: int
    namespace: str

    def __post_init__(self) -> None:
        """Reject policies that could never admit a request."""
        if self.max_requests < 1:
            msg = f"max_requests must be positive, got: {self.max_requests}"
            raise ValueError(msg)
        if self.window <= dt.timedelta(0):
            msg = f"window must be positive, got: {self.window}"
            raise ValueError(msg)

    @property
    def window_ms(self) -> int:
        """Window length in whole milliseconds."""
        return int(self.window.total_seconds() * 1000)

    def key_for(self, identity: str) -> str:
        """Return the counter key for ``identity`` under this policy."""
        return f"{self.namespace}:{identity}"


TRACKING_POLICY = RateLimitPolicy(dt.timedelta(seconds=60), 100, "rl:track")
CONVERSIONS_POLICY = RateLimitPolicy(dt.timedelta(seconds=60), 30, "rl:conv")
ADMIN_POLICY = RateLimitPolicy(dt.timedelta(seconds=60), 60, "rl:admin")
PUBLIC_POLICY = RateLimitPolicy(dt.timedelta(seconds=60), 100, "rl:public")
AUTH_POLICY = RateLimitPolicy(dt.timedelta(minutes=15), 5, "rl:auth")
