"""Broker configuration helpers for Dramatiq actor setup.

A Redis broker is used when ``BEACON_REDIS_URL`` is set. Test runs, and
processes that set ``BEACON_ALLOW_STUB_BROKER``, fall back to an
in-process :class:`~dramatiq.brokers.stub.StubBroker`.
"""

from __future__ import annotations

import os
import sys
import threading

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker

REDIS_URL_ENV = "BEACON_REDIS_URL"
ALLOW_STUB_ENV = "BEACON_ALLOW_STUB_BROKER"

_BROKER_LOCK = threading.Lock()
_broker_configured = False


def _is_running_tests() -> bool:
    """Return True when pytest has been imported or set its variables."""
    return "pytest" in sys.modules or any(
        key in os.environ
        for key in ["PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER", "PYTEST_ADDOPTS"]
    )


def _should_use_stub_broker() -> bool:
    allow_stub = os.environ.get(ALLOW_STUB_ENV, "")
    return allow_stub.lower() in {"1", "true", "yes"} or _is_running_tests()


def _current_broker() -> dramatiq.Broker | None:
    try:  # pragma: no cover - depends on installed broker extras
        return dramatiq.get_broker()
    except (ImportError, LookupError):
        return None


def ensure_broker_configured() -> None:
    """Ensure a Dramatiq broker is configured before actors are declared or run.

    Thread-safe and idempotent. In test and stub-allowed runs an existing
    :class:`StubBroker` is kept so actors stay bound to it; otherwise
    ``BEACON_REDIS_URL`` selects a Redis broker.

    Raises
    ------
    RuntimeError
        If no broker can be chosen: Redis is not configured and stub
        brokers are not allowed.

    """
    global _broker_configured

    if _broker_configured:
        return

    with _BROKER_LOCK:
        if _broker_configured:
            return

        redis_url = os.environ.get(REDIS_URL_ENV, "").strip()
        use_stub = _should_use_stub_broker()
        if redis_url and not use_stub:
            dramatiq.set_broker(RedisBroker(url=redis_url))
        elif use_stub:
            if not isinstance(_current_broker(), StubBroker):
                dramatiq.set_broker(StubBroker())
        elif _current_broker() is None:  # pragma: no cover - prod misconfiguration
            message = (
                "No Dramatiq broker configured. "
                f"Set {REDIS_URL_ENV} or set {ALLOW_STUB_ENV}=1 for "
                "local/test runs."
            )
            raise RuntimeError(message)

        _broker_configured = True
