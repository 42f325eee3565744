"""Configuration for the forwarding queue and dispatch worker.

Usage
-----
>>> config = ForwardingConfig()
>>> config.max_attempts
5

Or load from environment variables:

>>> import os
>>> os.environ["BEACON_FORWARDING_MAX_ATTEMPTS"] = "3"
>>> ForwardingConfig.from_env().max_attempts
3

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt

from beacon.common.env import env_bool, env_positive_float, env_positive_int
from beacon.forwarding.retry import RetryPolicy


@dc.dataclass(frozen=True, slots=True)
class ForwardingConfig:
    """Settings governing retries, leases and connector timeouts.

    Attributes
    ----------
    max_attempts
        Delivery attempts per job before it is marked exhausted.
    base_delay_s
        Backoff after the first failed attempt; doubles per attempt.
    lease_s
        How long a claim stays exclusive before another worker may take
        the job over.
    discard_completed
        Delete jobs once every destination has been delivered.
    connector_timeout_s
        Timeout applied to each provider HTTP request.
    sweep_batch
        Maximum due jobs re-notified per sweep.

    """

    max_attempts: int = 5
    base_delay_s: float = 2.0
    lease_s: int = 60
    discard_completed: bool = True
    connector_timeout_s: float = 10.0
    sweep_batch: int = 100

    @property
    def retry_policy(self) -> RetryPolicy:
        """Retry policy derived from the attempt budget and base delay."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=dt.timedelta(seconds=self.base_delay_s),
        )

    @property
    def lease(self) -> dt.timedelta:
        """Claim lease as a timedelta."""
        return dt.timedelta(seconds=self.lease_s)

    @classmethod
    def from_env(cls) -> ForwardingConfig:
        """Create configuration from ``BEACON_FORWARDING_*`` variables.

        Raises
        ------
        ValueError
            If a variable is present but not a valid positive number or
            boolean.

        """
        return cls(
            max_attempts=env_positive_int("BEACON_FORWARDING_MAX_ATTEMPTS", 5),
            base_delay_s=env_positive_float("BEACON_FORWARDING_BASE_DELAY_S", 2.0),
            lease_s=env_positive_int("BEACON_FORWARDING_LEASE_S", 60),
            discard_completed=env_bool(
                "BEACON_FORWARDING_DISCARD_COMPLETED", default=True
            ),
            connector_timeout_s=env_positive_float(
                "BEACON_CONNECTOR_TIMEOUT_S", 10.0
            ),
            sweep_batch=env_positive_int("BEACON_FORWARDING_SWEEP_BATCH", 100),
        )
