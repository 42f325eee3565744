"""Snapchat Conversions API connector."""

from __future__ import annotations

import typing as typ

import msgspec

from beacon.common.time import epoch_millis
from beacon.connectors.base import HttpConnector, SendOutcome, compact
from beacon.connectors.hashing import hash_identifier, hash_phone
from beacon.routing.types import DestinationType

if typ.TYPE_CHECKING:
    from beacon.events.canonical import CanonicalEvent

CONVERSION_URL = "https://tr.snapchat.com/v2/conversion"

EVENT_TYPES = {
    "lead_submitted": "SIGN_UP",
    "booking_confirmed": "CUSTOM_EVENT_1",
    "job_completed": "PURCHASE",
}


class SnapchatCredentials(msgspec.Struct, kw_only=True, rename="camel"):
    """Snap pixel and Conversions API token."""

    access_token: str
    pixel_id: str


class SnapchatConnector(HttpConnector[SnapchatCredentials]):
    """Send conversions to a Snap pixel."""

    destination_type = DestinationType.SNAP_CAPI
    credentials_type = SnapchatCredentials

    async def _deliver(
        self, credentials: SnapchatCredentials, event: CanonicalEvent
    ) -> SendOutcome:
        data = compact(
            {
                "event_type": EVENT_TYPES.get(event.name, "CUSTOM_EVENT_1"),
                "event_conversion_type": "WEB",
                "event_tag": event.name,
                "timestamp": epoch_millis(event.occurred_at),
                "hashed_email": hash_identifier(event.user.email),
                "hashed_phone_number": hash_phone(event.user.phone),
                "hashed_ip_address": hash_identifier(event.user.ip_address),
                "user_agent": event.user.user_agent,
                "page_url": event.landing_url,
                "price": event.value,
                "currency": event.currency or "USD",
                "transaction_id": event.external_event_id,
                "client_dedup_id": event.dedupe_id,
            }
        )
        response = await self._post(
            CONVERSION_URL,
            json={"pixel_id": credentials.pixel_id, "data": [data]},
            headers={"Authorization": f"Bearer {credentials.access_token}"},
        )
        return SendOutcome.delivered(
            response=self._json(response), status_code=response.status_code
        )
