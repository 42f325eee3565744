"""Admission control: sliding-window rate limiting per caller identity."""

from __future__ import annotations

from .identity import ANONYMOUS_IDENTITY, resolve_identity
from .limiter import AdmissionDecision, AdmissionLimiter
from .policies import (
    ADMIN_POLICY,
    AUTH_POLICY,
    CONVERSIONS_POLICY,
    PUBLIC_POLICY,
    TRACKING_POLICY,
    RateLimitPolicy,
)
from .store import (
    CounterStore,
    CounterStoreError,
    InMemoryCounterStore,
    RedisCounterStore,
    WindowState,
)

__all__ = [
    "ADMIN_POLICY",
    "ANONYMOUS_IDENTITY",
    "AUTH_POLICY",
    "CONVERSIONS_POLICY",
    "PUBLIC_POLICY",
    "TRACKING_POLICY",
    "AdmissionDecision",
    "AdmissionLimiter",
    "CounterStore",
    "CounterStoreError",
    "InMemoryCounterStore",
    "RateLimitPolicy",
    "RedisCounterStore",
    "WindowState",
    "resolve_identity",
]
