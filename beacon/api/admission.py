"""Per-route admission checks for Falcon resources."""

from __future__ import annotations

import typing as typ

from beacon.admission import resolve_identity
from beacon.api.errors import RateLimitedError

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from beacon.admission import AdmissionDecision, AdmissionLimiter, RateLimitPolicy

__all__ = ["AdmissionGate"]


class AdmissionGate:
    """Apply one rate-limit policy to the requests of one surface."""

    def __init__(
        self,
        limiter: AdmissionLimiter,
        policy: RateLimitPolicy,
        *,
        trust_forwarded_for: bool = True,
    ) -> None:
        """Bind the shared limiter to ``policy``."""
        self._limiter = limiter
        self._policy = policy
        self._trust_forwarded_for = trust_forwarded_for

    async def admit(self, req: Request, resp: Response) -> AdmissionDecision:
        """Record the request and set ``X-RateLimit-*`` headers on ``resp``.

        Raises
        ------
        RateLimitedError
            If the caller has used up the policy's window.

        """
        forwarded_for = (
            req.get_header("X-Forwarded-For") if self._trust_forwarded_for else None
        )
        identity = resolve_identity(
            req.get_header("Authorization"), forwarded_for, req.remote_addr
        )
        decision = await self._limiter.check(identity, self._policy)
        if not decision.allowed:
            raise RateLimitedError(decision)
        resp.set_headers(decision.headers())
        return decision
