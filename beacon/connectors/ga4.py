"""Google Analytics 4 Measurement Protocol connector."""

from __future__ import annotations

import typing as typ

import msgspec

from beacon.connectors.base import HttpConnector, SendOutcome, compact
from beacon.routing.types import DestinationType

if typ.TYPE_CHECKING:
    from beacon.events.canonical import CanonicalEvent

COLLECT_URL = "https://www.google-analytics.com/mp/collect"

# GA4 rejects parameter values longer than this.
_MAX_PARAM_LENGTH = 100


class GA4Credentials(msgspec.Struct, kw_only=True, rename="camel"):
    """Measurement Protocol stream credentials."""

    measurement_id: str
    api_secret: str


def _params(event: CanonicalEvent) -> dict[str, typ.Any]:
    params: dict[str, typ.Any] = {
        key: value[:_MAX_PARAM_LENGTH] if isinstance(value, str) else value
        for key, value in event.public_properties.items()
        if isinstance(value, str | int | float | bool)
    }
    params.update(
        compact(
            {
                "session_id": event.session_id,
                "page_location": event.landing_url,
                "page_referrer": event.referrer,
                "campaign_source": event.utm.get("source"),
                "campaign_medium": event.utm.get("medium"),
                "campaign_name": event.utm.get("campaign"),
                "value": event.value,
                "currency": event.currency,
                "event_id": event.dedupe_id,
            }
        )
    )
    return params


class GA4Connector(HttpConnector[GA4Credentials]):
    """Send events to a GA4 web stream."""

    destination_type = DestinationType.GA4
    credentials_type = GA4Credentials

    async def _deliver(
        self, credentials: GA4Credentials, event: CanonicalEvent
    ) -> SendOutcome:
        body = compact(
            {
                "client_id": event.device_id or event.session_id or event.id,
                "user_id": event.user_id,
                "timestamp_micros": int(event.occurred_at.timestamp() * 1_000_000),
                "events": [{"name": event.name, "params": _params(event)}],
            }
        )
        response = await self._post(
            COLLECT_URL,
            json=body,
            params={
                "measurement_id": credentials.measurement_id,
                "api_secret": credentials.api_secret,
            },
        )
        return SendOutcome.delivered(status_code=response.status_code)
