"""Service-level configuration read from ``BEACON_*`` environment variables.

Usage
-----
>>> import os
>>> os.environ["BEACON_ADMIN_TOKEN"] = "s3cret"
>>> BeaconConfig.from_env().admin_token
's3cret'

"""

from __future__ import annotations

import dataclasses as dc

from beacon.common.env import env_bool, env_optional, env_positive_float

DATABASE_URL_ENV = "BEACON_DATABASE_URL"
REDIS_URL_ENV = "BEACON_REDIS_URL"
WEBHOOK_SECRET_ENV = "BEACON_WEBHOOK_SECRET"
ADMIN_TOKEN_ENV = "BEACON_ADMIN_TOKEN"
LIMITER_TIMEOUT_ENV = "BEACON_LIMITER_TIMEOUT_S"
TRUST_FORWARDED_FOR_ENV = "BEACON_TRUST_FORWARDED_FOR"


@dc.dataclass(frozen=True, slots=True)
class BeaconConfig:
    """Settings for the HTTP surface and its shared services.

    Attributes
    ----------
    database_url
        SQLAlchemy async URL; the app serves only health probes without it.
    redis_url
        Shared counter store for admission limiting. Without it each
        process keeps its own in-memory windows.
    webhook_secret
        Shared secret for signed ``POST /conversions`` calls; signatures
        are not required when unset.
    admin_token
        Token expected in ``X-Admin-Token``; admin routes reject every
        request when unset.
    limiter_timeout_s
        Deadline for one counter store round trip before failing open.
    trust_forwarded_for
        Use the first ``X-Forwarded-For`` hop as the caller address.

    """

    database_url: str | None = None
    redis_url: str | None = None
    webhook_secret: str | None = None
    admin_token: str | None = None
    limiter_timeout_s: float = 0.25
    trust_forwarded_for: bool = True

    @classmethod
    def from_env(cls) -> BeaconConfig:
        """Create configuration from environment variables.

        Raises
        ------
        ValueError
            If a numeric or boolean variable cannot be parsed.

        """
        return cls(
            database_url=env_optional(DATABASE_URL_ENV),
            redis_url=env_optional(REDIS_URL_ENV),
            webhook_secret=env_optional(WEBHOOK_SECRET_ENV),
            admin_token=env_optional(ADMIN_TOKEN_ENV),
            limiter_timeout_s=env_positive_float(LIMITER_TIMEOUT_ENV, 0.25),
            trust_forwarded_for=env_bool(TRUST_FORWARDED_FOR_ENV, default=True),
        )
