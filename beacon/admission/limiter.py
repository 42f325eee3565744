"""Sliding-window admission limiter with fail-open semantics."""

from __future__ import annotations

import asyncio
import dataclasses as dc
import datetime as dt
import typing as typ

from beacon.admission.store import CounterStoreError
from beacon.common.time import epoch_millis, utcnow
from beacon.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from beacon.admission.policies import RateLimitPolicy
    from beacon.admission.store import CounterStore

__all__ = ["AdmissionDecision", "AdmissionLimiter"]

logger = get_logger(__name__)

DEFAULT_TIMEOUT_S = 0.25


@dc.dataclass(frozen=True, slots=True)
class AdmissionDecision:
    """Result of one admission check.

    Attributes
    ----------
    allowed
        Whether the caller may proceed.
    limit
        Configured maximum for the policy.
    remaining
        Requests still available in the current window.
    reset_at
        When the oldest counted request leaves the window.
    retry_after
        Seconds the caller should wait; set only when rejected.
    degraded
        True when the counter store was unavailable and the check failed
        open.

    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: dt.datetime
    retry_after: int | None = None
    degraded: bool = False

    def headers(self) -> dict[str, str]:
        """Return ``X-RateLimit-*`` headers describing this decision."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": self.reset_at.isoformat(),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class AdmissionLimiter:
    """Throttle callers per identity using a shared :class:`CounterStore`.

    The store is consulted under a timeout. Store errors and timeouts
    admit the request and log a warning, since event admission outranks
    throttling precision.
    """

    def __init__(
        self,
        store: CounterStore,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        clock: typ.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Configure the limiter with its counter store and clock."""
        self._store = store
        self._timeout_s = timeout_s
        self._clock = clock

    async def check(self, identity: str, policy: RateLimitPolicy) -> AdmissionDecision:
        """Record an attempt by ``identity`` and decide whether to admit it.

        Parameters
        ----------
        identity
            Caller identity from :func:`resolve_identity`.
        policy
            Window, limit and namespace for the surface being accessed.

        Returns
        -------
        AdmissionDecision
            The decision; rejected decisions carry ``retry_after`` equal to
            the policy window in seconds.

        """
        now = self._clock()
        now_ms = epoch_millis(now)
        key = policy.key_for(identity)
        try:
            async with asyncio.timeout(self._timeout_s):
                state = await self._store.hit(
                    key,
                    now_ms=now_ms,
                    window_ms=policy.window_ms,
                    limit=policy.max_requests,
                )
        except (CounterStoreError, OSError, TimeoutError) as exc:
            log_warning(
                logger,
                "Rate limiter unavailable for %s, admitting request: %s",
                policy.namespace,
                str(exc) or type(exc).__name__,
            )
            return AdmissionDecision(
                allowed=True,
                limit=policy.max_requests,
                remaining=policy.max_requests,
                reset_at=now + policy.window,
                degraded=True,
            )

        reset_at = dt.datetime.fromtimestamp(
            (state.oldest_ms + policy.window_ms) / 1000, tz=dt.UTC
        )
        if state.prior_count >= policy.max_requests:
            return AdmissionDecision(
                allowed=False,
                limit=policy.max_requests,
                remaining=0,
                reset_at=reset_at,
                retry_after=int(policy.window.total_seconds()),
            )
        return AdmissionDecision(
            allowed=True,
            limit=policy.max_requests,
            remaining=max(0, policy.max_requests - state.prior_count - 1),
            reset_at=reset_at,
        )
