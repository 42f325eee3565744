"""Signed outbound webhook connector."""

from __future__ import annotations

import typing as typ

import msgspec

from beacon.connectors.base import HttpConnector, SendOutcome
from beacon.routing.types import DestinationType
from beacon.webhooks import build_webhook_headers

if typ.TYPE_CHECKING:
    from beacon.events.canonical import CanonicalEvent


class WebhookCredentials(msgspec.Struct, kw_only=True, rename="camel"):
    """Receiver URL, shared signing secret and extra headers."""

    url: str
    secret: typ.Annotated[str, msgspec.Meta(min_length=1)]
    headers: dict[str, str] = msgspec.field(default_factory=dict)


def render_event(event: CanonicalEvent) -> bytes:
    """Serialise the canonical event as the webhook body."""
    return msgspec.json.encode(
        {
            "id": event.id,
            "name": event.name,
            "occurredAt": event.occurred_at.isoformat(),
            "source": event.source,
            "externalEventId": event.external_event_id,
            "sessionId": event.session_id,
            "deviceId": event.device_id,
            "userId": event.user_id,
            "landingUrl": event.landing_url,
            "referrer": event.referrer,
            "utm": event.utm,
            "clickIds": event.click_ids,
            "consent": event.consent.as_dict(),
            "payload": event.properties,
        }
    )


class WebhookConnector(HttpConnector[WebhookCredentials]):
    """POST the canonical event to a receiver with HMAC signature headers."""

    destination_type = DestinationType.WEBHOOK
    credentials_type = WebhookCredentials

    async def _deliver(
        self, credentials: WebhookCredentials, event: CanonicalEvent
    ) -> SendOutcome:
        body = render_event(event)
        headers = {
            **credentials.headers,
            **build_webhook_headers(body, credentials.secret),
        }
        response = await self._post(credentials.url, content=body, headers=headers)
        return SendOutcome.delivered(status_code=response.status_code)
