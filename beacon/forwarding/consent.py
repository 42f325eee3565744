"""Consent gating applied per destination before a connector runs."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from beacon.routing.types import Capability

if typ.TYPE_CHECKING:
    from beacon.events.canonical import CanonicalEvent
    from beacon.routing.types import DestinationType

__all__ = ["ConsentDecision", "apply_consent"]


@dc.dataclass(frozen=True, slots=True)
class ConsentDecision:
    """Event to deliver, or the reason delivery is suppressed."""

    event: CanonicalEvent | None
    reason: str | None = None

    @property
    def suppressed(self) -> bool:
        """True when the destination must not receive the event."""
        return self.event is None


def apply_consent(
    destination_type: DestinationType, event: CanonicalEvent
) -> ConsentDecision:
    """Return the consent-adjusted event for ``destination_type``.

    Ad destinations are skipped without ``ad_storage`` and lose hashed
    user data without ``ad_user_data``. Analytics destinations lose
    persistent identifiers without ``analytics_storage``. Outbound
    webhooks receive the event as stored, consent flags included.
    """
    consent = event.consent
    match destination_type.capability:
        case Capability.AD_CONVERSION:
            if not consent.granted("ad_storage"):
                return ConsentDecision(None, "ad_storage consent denied")
            if not consent.granted("ad_user_data"):
                return ConsentDecision(event.without_user_data())
            return ConsentDecision(event)
        case Capability.ANALYTICS:
            if not consent.granted("analytics_storage"):
                return ConsentDecision(event.without_persistent_ids())
            return ConsentDecision(event)
        case _:
            return ConsentDecision(event)
