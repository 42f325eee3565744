"""Webhook signature generation and verification."""

from __future__ import annotations

from .signature import (
    DEFAULT_MAX_AGE_SECONDS,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    GeneratedSignature,
    SignatureFailure,
    VerificationResult,
    build_webhook_headers,
    generate_signature,
    verify_signature,
)

__all__ = [
    "DEFAULT_MAX_AGE_SECONDS",
    "SIGNATURE_HEADER",
    "TIMESTAMP_HEADER",
    "GeneratedSignature",
    "SignatureFailure",
    "VerificationResult",
    "build_webhook_headers",
    "generate_signature",
    "verify_signature",
]
