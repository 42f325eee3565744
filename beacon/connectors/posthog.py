"""PostHog capture API connector."""

from __future__ import annotations

import typing as typ

import msgspec

from beacon.connectors.base import HttpConnector, SendOutcome, compact
from beacon.routing.types import DestinationType

if typ.TYPE_CHECKING:
    from beacon.events.canonical import CanonicalEvent

DEFAULT_HOST = "https://us.i.posthog.com"


class PostHogCredentials(msgspec.Struct, kw_only=True, rename="camel"):
    """Project API key and ingestion host."""

    api_key: str
    host: str = DEFAULT_HOST


class PostHogConnector(HttpConnector[PostHogCredentials]):
    """Capture events into a PostHog project."""

    destination_type = DestinationType.POSTHOG
    credentials_type = PostHogCredentials

    async def _deliver(
        self, credentials: PostHogCredentials, event: CanonicalEvent
    ) -> SendOutcome:
        properties = {
            **event.public_properties,
            **compact(
                {
                    "$session_id": event.session_id,
                    "$current_url": event.landing_url,
                    "$referrer": event.referrer,
                    "$insert_id": event.dedupe_id,
                    "source": event.source,
                }
            ),
            **{f"utm_{key}": value for key, value in event.utm.items()},
            **event.click_ids,
        }
        body = {
            "api_key": credentials.api_key,
            "event": event.name,
            "distinct_id": event.distinct_id,
            "properties": properties,
            "timestamp": event.occurred_at.isoformat(),
        }
        url = f"{credentials.host.rstrip('/')}/capture/"
        response = await self._post(url, json=body)
        return SendOutcome.delivered(status_code=response.status_code)
