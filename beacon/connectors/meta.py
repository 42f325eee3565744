"""Meta (Facebook) Conversions API connector."""

from __future__ import annotations

import typing as typ

import msgspec

from beacon.common.time import epoch_millis, epoch_seconds
from beacon.connectors.base import HttpConnector, SendOutcome, compact
from beacon.connectors.hashing import hash_identifier, hash_phone
from beacon.routing.types import DestinationType

if typ.TYPE_CHECKING:
    from beacon.events.canonical import CanonicalEvent

GRAPH_URL = "https://graph.facebook.com/v20.0/{pixel_id}/events"

EVENT_NAMES = {
    "lead_submitted": "Lead",
    "booking_confirmed": "Schedule",
    "job_completed": "Purchase",
}


class MetaCredentials(msgspec.Struct, kw_only=True, rename="camel"):
    """Pixel and system-user token for the Conversions API."""

    pixel_id: str
    access_token: str
    test_event_code: str | None = None


def _hashed_list(value: str | None) -> list[str] | None:
    return [value] if value else None


def user_data(event: CanonicalEvent) -> dict[str, typ.Any]:
    """Return Meta ``user_data`` with identifiers hashed."""
    user = event.user
    fbc = None
    if fbclid := event.click_ids.get("fbclid"):
        fbc = f"fb.1.{epoch_millis(event.occurred_at)}.{fbclid}"
    return compact(
        {
            "em": _hashed_list(hash_identifier(user.email)),
            "ph": _hashed_list(hash_phone(user.phone)),
            "fn": _hashed_list(hash_identifier(user.first_name)),
            "ln": _hashed_list(hash_identifier(user.last_name)),
            "ct": _hashed_list(hash_identifier(user.city, strip_spaces=True)),
            "st": _hashed_list(hash_identifier(user.state)),
            "zp": _hashed_list(hash_identifier(user.zip_code)),
            "country": _hashed_list(hash_identifier(user.country)),
            "external_id": _hashed_list(hash_identifier(event.user_id)),
            "client_ip_address": user.ip_address,
            "client_user_agent": user.user_agent,
            "fbc": fbc,
        }
    )


class MetaConnector(HttpConnector[MetaCredentials]):
    """Send server events to a Meta pixel."""

    destination_type = DestinationType.META_CAPI
    credentials_type = MetaCredentials

    async def _deliver(
        self, credentials: MetaCredentials, event: CanonicalEvent
    ) -> SendOutcome:
        payload = compact(
            {
                "event_name": EVENT_NAMES.get(event.name, event.name),
                "event_time": epoch_seconds(event.occurred_at),
                "event_id": event.dedupe_id,
                "action_source": "website",
                "event_source_url": event.landing_url,
                "user_data": user_data(event),
                "custom_data": compact(
                    {"value": event.value, "currency": event.currency}
                ),
            }
        )
        body = compact(
            {"data": [payload], "test_event_code": credentials.test_event_code}
        )
        response = await self._post(
            GRAPH_URL.format(pixel_id=credentials.pixel_id),
            json=body,
            params={"access_token": credentials.access_token},
        )
        result = self._json(response)
        received = result.get("events_received")
        sent = received if isinstance(received, int) else 1
        return SendOutcome.delivered(
            sent=sent,
            failed=max(0, 1 - sent),
            response=result,
            status_code=response.status_code,
        )
