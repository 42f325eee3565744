"""HMAC-SHA256 signing and verification for webhook payloads.

Signatures cover ``"{timestamp}.{body}"`` when a timestamp accompanies the
request and the raw body otherwise. Rendered signatures are lowercase hex
with an optional ``sha256=`` prefix.

Usage
-----
Sign an outbound payload and verify it on the receiving side::

    generated = generate_signature(body, secret)
    result = verify_signature(
        body, generated.signature, secret, timestamp=generated.timestamp
    )
    assert result.valid

"""

from __future__ import annotations

import dataclasses as dc
import enum
import hashlib
import hmac
import typing as typ

from beacon.common.time import epoch_seconds, utcnow

if typ.TYPE_CHECKING:
    import datetime as dt

__all__ = [
    "DEFAULT_MAX_AGE_SECONDS",
    "SIGNATURE_HEADER",
    "SIGNATURE_PREFIX",
    "TIMESTAMP_HEADER",
    "GeneratedSignature",
    "SignatureFailure",
    "VerificationResult",
    "build_webhook_headers",
    "generate_signature",
    "verify_signature",
]

SIGNATURE_HEADER = "X-Webhook-Signature"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"
SIGNATURE_PREFIX = "sha256="
DEFAULT_MAX_AGE_SECONDS = 300
USER_AGENT = "beacon-webhooks/1.0"


class SignatureFailure(enum.StrEnum):
    """Reasons a signature check can fail, surfaced verbatim to callers."""

    MISSING_SIGNATURE = "Missing signature"
    SECRET_NOT_CONFIGURED = "Webhook secret not configured"
    INVALID_TIMESTAMP = "Invalid timestamp"
    TIMESTAMP_TOO_OLD = "Webhook timestamp too old"
    MISMATCH = "Signature mismatch"
    INVALID_FORMAT = "Invalid signature format"


@dc.dataclass(frozen=True, slots=True)
class VerificationResult:
    """Outcome of :func:`verify_signature`."""

    valid: bool
    error: SignatureFailure | None = None

    @classmethod
    def ok(cls) -> VerificationResult:
        """Return a successful verification result."""
        return cls(valid=True)

    @classmethod
    def failed(cls, reason: SignatureFailure) -> VerificationResult:
        """Return a failed verification result carrying ``reason``."""
        return cls(valid=False, error=reason)


@dc.dataclass(frozen=True, slots=True)
class GeneratedSignature:
    """Signature header value and the timestamp it was computed with."""

    signature: str
    timestamp: str | None


def _as_bytes(body: str | bytes) -> bytes:
    return body.encode("utf-8") if isinstance(body, str) else body


def _signed_message(body: bytes, timestamp: str | None) -> bytes:
    if timestamp is None:
        return body
    return timestamp.encode("ascii") + b"." + body


def _digest(message: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def _parse_timestamp(timestamp: str) -> int | None:
    stripped = timestamp.strip()
    digits = stripped.removeprefix("-")
    # str.isdigit accepts superscripts and other non-ASCII digits.
    if not (digits.isascii() and digits.isdigit()):
        return None
    return int(stripped)


def verify_signature(  # noqa: PLR0911 - one return per failure reason
    raw_body: str | bytes,
    signature: str | None,
    secret: str | None,
    timestamp: str | None = None,
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    *,
    now: dt.datetime | None = None,
) -> VerificationResult:
    """Verify an HMAC-SHA256 webhook signature.

    Parameters
    ----------
    raw_body
        The exact request body the sender signed.
    signature
        Value of the signature header, with or without ``sha256=``.
    secret
        Shared secret. Blank secrets are treated as unconfigured.
    timestamp
        Optional Unix-seconds timestamp header value. When present it is
        part of the signed message and must be fresh. An empty value is
        treated as absent.
    max_age_seconds
        Maximum tolerated distance between ``timestamp`` and ``now``.
    now
        Verification time; defaults to the current UTC time.

    Returns
    -------
    VerificationResult
        ``valid`` is true on success; otherwise ``error`` names the first
        check that failed.

    """
    if not signature:
        return VerificationResult.failed(SignatureFailure.MISSING_SIGNATURE)
    if not secret:
        return VerificationResult.failed(SignatureFailure.SECRET_NOT_CONFIGURED)

    timestamp = timestamp or None
    if timestamp is not None:
        issued_at = _parse_timestamp(timestamp)
        if issued_at is None:
            return VerificationResult.failed(SignatureFailure.INVALID_TIMESTAMP)
        current = epoch_seconds(now or utcnow())
        if abs(current - issued_at) > max_age_seconds:
            return VerificationResult.failed(SignatureFailure.TIMESTAMP_TOO_OLD)

    provided_hex = signature.strip().removeprefix(SIGNATURE_PREFIX)
    try:
        provided = bytes.fromhex(provided_hex)
    except ValueError:
        return VerificationResult.failed(SignatureFailure.INVALID_FORMAT)

    expected = _digest(_signed_message(_as_bytes(raw_body), timestamp), secret)
    # compare_digest is only constant-time over equal-length inputs.
    if len(provided) != len(expected):
        return VerificationResult.failed(SignatureFailure.MISMATCH)
    if not hmac.compare_digest(provided, expected):
        return VerificationResult.failed(SignatureFailure.MISMATCH)
    return VerificationResult.ok()


def generate_signature(
    body: str | bytes,
    secret: str,
    *,
    include_timestamp: bool = True,
    now: dt.datetime | None = None,
) -> GeneratedSignature:
    """Sign ``body`` and return the ``sha256=``-prefixed header value.

    Parameters
    ----------
    body
        Payload exactly as it will be transmitted.
    secret
        Shared secret used as the HMAC key.
    include_timestamp
        Bind the signature to the current Unix time.
    now
        Signing time; defaults to the current UTC time.

    Returns
    -------
    GeneratedSignature
        Header value plus the timestamp that was signed, if any.

    """
    timestamp = str(epoch_seconds(now or utcnow())) if include_timestamp else None
    digest = _digest(_signed_message(_as_bytes(body), timestamp), secret)
    return GeneratedSignature(
        signature=f"{SIGNATURE_PREFIX}{digest.hex()}",
        timestamp=timestamp,
    )


def build_webhook_headers(
    body: str | bytes,
    secret: str,
    *,
    now: dt.datetime | None = None,
) -> dict[str, str]:
    """Return the HTTP headers for a signed outbound webhook delivery."""
    generated = generate_signature(body, secret, now=now)
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: generated.signature,
        "User-Agent": USER_AGENT,
    }
    if generated.timestamp is not None:
        headers[TIMESTAMP_HEADER] = generated.timestamp
    return headers
