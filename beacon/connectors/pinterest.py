"""Pinterest Conversions API connector."""

from __future__ import annotations

import typing as typ

import msgspec

from beacon.common.time import epoch_seconds
from beacon.connectors.base import HttpConnector, SendOutcome, compact
from beacon.connectors.hashing import hash_identifier, hash_phone
from beacon.routing.types import DestinationType

if typ.TYPE_CHECKING:
    from beacon.events.canonical import CanonicalEvent

EVENTS_URL = "https://api.pinterest.com/v5/ad_accounts/{ad_account_id}/events"

EVENT_NAMES = {
    "lead_submitted": "lead",
    "booking_confirmed": "signup",
    "job_completed": "checkout",
}


class PinterestCredentials(msgspec.Struct, kw_only=True, rename="camel"):
    """Ad account and Conversions API token."""

    access_token: str
    ad_account_id: str
    conversion_token: str | None = None


def _hashed(value: str | None) -> list[str] | None:
    digest = hash_identifier(value, strip_spaces=True)
    return [digest] if digest else None


def user_data(event: CanonicalEvent) -> dict[str, typ.Any]:
    """Return Pinterest ``user_data`` with whitespace-stripped hashes."""
    user = event.user
    phone = hash_phone(user.phone)
    return compact(
        {
            "em": _hashed(user.email),
            "ph": [phone] if phone else None,
            "fn": _hashed(user.first_name),
            "ln": _hashed(user.last_name),
            "ct": _hashed(user.city),
            "st": _hashed(user.state),
            "zp": _hashed(user.zip_code),
            "country": _hashed(user.country),
            "external_id": _hashed(event.user_id),
            "client_ip_address": user.ip_address,
            "client_user_agent": user.user_agent,
        }
    )


def _count_failures(result: dict[str, typ.Any]) -> int:
    events = result.get("events")
    if not isinstance(events, list):
        return 0
    return sum(
        1
        for item in events
        if isinstance(item, dict) and item.get("status") == "failed"
    )


class PinterestConnector(HttpConnector[PinterestCredentials]):
    """Send conversions to a Pinterest ad account."""

    destination_type = DestinationType.PINTEREST_CAPI
    credentials_type = PinterestCredentials

    async def _deliver(
        self, credentials: PinterestCredentials, event: CanonicalEvent
    ) -> SendOutcome:
        custom_data = compact(
            {
                "currency": event.currency,
                "value": None if event.value is None else f"{event.value:.2f}",
                "order_id": event.external_event_id,
            }
        )
        data = compact(
            {
                "event_name": EVENT_NAMES.get(event.name, "custom"),
                "action_source": "web",
                "event_time": epoch_seconds(event.occurred_at),
                "event_id": event.dedupe_id,
                "event_source_url": event.landing_url,
                "user_data": user_data(event),
                "custom_data": custom_data,
            }
        )
        body = compact(
            {"data": [data], "conversion_token": credentials.conversion_token}
        )
        response = await self._post(
            EVENTS_URL.format(ad_account_id=credentials.ad_account_id),
            json=body,
            headers={"Authorization": f"Bearer {credentials.access_token}"},
        )
        result = self._json(response)
        failed = min(1, _count_failures(result))
        return SendOutcome.delivered(
            sent=1 - failed,
            failed=failed,
            response=result,
            status_code=response.status_code,
        )
