"""Destination types and the delivery capabilities they provide."""

from __future__ import annotations

import enum
import types

__all__ = ["DESTINATION_CAPABILITY", "Capability", "DestinationType"]


class Capability(enum.StrEnum):
    """What kind of signal a destination consumes."""

    ANALYTICS = "analytics"
    AD_CONVERSION = "ad_conversion"
    OUTBOUND_WEBHOOK = "outbound_webhook"


class DestinationType(enum.StrEnum):
    """Supported delivery targets; declaration order is routing order."""

    POSTHOG = "POSTHOG"
    GA4 = "GA4"
    META_CAPI = "META_CAPI"
    GOOGLE_ADS_OFFLINE = "GOOGLE_ADS_OFFLINE"
    MICROSOFT_ADS_OFFLINE = "MICROSOFT_ADS_OFFLINE"
    TIKTOK_EVENTS_API = "TIKTOK_EVENTS_API"
    SNAP_CAPI = "SNAP_CAPI"
    PINTEREST_CAPI = "PINTEREST_CAPI"
    WEBHOOK = "WEBHOOK"

    @property
    def capability(self) -> Capability:
        """Capability this destination type is tagged with."""
        return DESTINATION_CAPABILITY[self]


DESTINATION_CAPABILITY: types.MappingProxyType[DestinationType, Capability] = (
    types.MappingProxyType(
        {
            DestinationType.POSTHOG: Capability.ANALYTICS,
            DestinationType.GA4: Capability.ANALYTICS,
            DestinationType.META_CAPI: Capability.AD_CONVERSION,
            DestinationType.GOOGLE_ADS_OFFLINE: Capability.AD_CONVERSION,
            DestinationType.MICROSOFT_ADS_OFFLINE: Capability.AD_CONVERSION,
            DestinationType.TIKTOK_EVENTS_API: Capability.AD_CONVERSION,
            DestinationType.SNAP_CAPI: Capability.AD_CONVERSION,
            DestinationType.PINTEREST_CAPI: Capability.AD_CONVERSION,
            DestinationType.WEBHOOK: Capability.OUTBOUND_WEBHOOK,
        }
    )
)
