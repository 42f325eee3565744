"""Caller identity resolution for admission control."""

from __future__ import annotations

__all__ = ["ANONYMOUS_IDENTITY", "resolve_identity"]

ANONYMOUS_IDENTITY = "anonymous"
_TOKEN_PREFIX_LENGTH = 32


def resolve_identity(
    authorization: str | None,
    forwarded_for: str | None,
    remote_addr: str | None,
) -> str:
    """Return the rate-limit identity for a request.

    An authenticated caller is keyed by a prefix of its credential so the
    full token never reaches the counter store. Unauthenticated callers are
    keyed by the first ``X-Forwarded-For`` hop, then the socket address.
    Callers with neither share one anonymous bucket.

    Parameters
    ----------
    authorization
        Raw ``Authorization`` header value.
    forwarded_for
        Raw ``X-Forwarded-For`` header value.
    remote_addr
        Peer address reported by the ASGI server.

    Returns
    -------
    str
        Identity such as ``user:Bearer abc...`` or ``ip:203.0.113.9``.

    """
    if authorization and authorization.strip():
        return f"user:{authorization.strip()[:_TOKEN_PREFIX_LENGTH]}"
    if forwarded_for:
        first_hop = forwarded_for.split(",", 1)[0].strip()
        if first_hop:
            return f"ip:{first_hop}"
    if remote_addr and remote_addr.strip():
        return f"ip:{remote_addr.strip()}"
    return ANONYMOUS_IDENTITY
