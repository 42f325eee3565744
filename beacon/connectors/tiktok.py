"""TikTok Events API connector."""

from __future__ import annotations

import typing as typ

import msgspec

from beacon.common.time import epoch_seconds
from beacon.connectors.base import ConnectorError, HttpConnector, SendOutcome, compact
from beacon.connectors.hashing import hash_identifier, hash_phone
from beacon.routing.types import DestinationType

if typ.TYPE_CHECKING:
    from beacon.events.canonical import CanonicalEvent

TRACK_URL = "https://business-api.tiktok.com/open_api/v1.3/event/track/"

EVENT_NAMES = {
    "lead_submitted": "SubmitForm",
    "booking_confirmed": "CompleteRegistration",
    "job_completed": "CompletePayment",
}


class TikTokCredentials(msgspec.Struct, kw_only=True, rename="camel"):
    """Pixel code and long-lived access token."""

    access_token: str
    pixel_code: str
    test_event_code: str | None = None


class TikTokConnector(HttpConnector[TikTokCredentials]):
    """Send web events to a TikTok pixel."""

    destination_type = DestinationType.TIKTOK_EVENTS_API
    credentials_type = TikTokCredentials

    async def _deliver(
        self, credentials: TikTokCredentials, event: CanonicalEvent
    ) -> SendOutcome:
        data = {
            "event": EVENT_NAMES.get(event.name, event.name),
            "event_time": epoch_seconds(event.occurred_at),
            "event_id": event.dedupe_id,
            "user": compact(
                {
                    "email": hash_identifier(event.user.email),
                    "phone_number": hash_phone(event.user.phone),
                    "external_id": hash_identifier(event.user_id),
                    "ttclid": event.click_ids.get("ttclid"),
                    "ip": event.user.ip_address,
                    "user_agent": event.user.user_agent,
                }
            ),
            "page": compact({"url": event.landing_url, "referrer": event.referrer}),
            "properties": compact({"value": event.value, "currency": event.currency}),
        }
        body = compact(
            {
                "pixel_code": credentials.pixel_code,
                "event_source": "web",
                "event_source_id": credentials.pixel_code,
                "data": [compact(data)],
                "test_event_code": credentials.test_event_code,
            }
        )
        response = await self._post(
            TRACK_URL, json=body, headers={"Access-Token": credentials.access_token}
        )
        result = self._json(response)
        if result.get("code") != 0:
            message = result.get("message") or "TikTok Events API error"
            raise ConnectorError.rejected(str(message), body=result)
        return SendOutcome.delivered(response=result, status_code=response.status_code)
