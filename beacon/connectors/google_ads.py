"""Google Ads offline click-conversion upload connector.

Uses the Google Ads REST interface: an OAuth refresh-token exchange
followed by ``customers/{id}:uploadClickConversions`` with partial
failure enabled, so rejected rows are tallied rather than failing the
whole request.
"""

from __future__ import annotations

import typing as typ

import msgspec

from beacon.connectors.base import ConnectorError, HttpConnector, SendOutcome, compact
from beacon.connectors.hashing import hash_identifier, hash_phone
from beacon.routing.types import DestinationType

if typ.TYPE_CHECKING:
    from beacon.events.canonical import CanonicalEvent

TOKEN_URL = "https://oauth2.googleapis.com/token"
UPLOAD_URL = (
    "https://googleads.googleapis.com/{version}/customers/"
    "{customer_id}:uploadClickConversions"
)

_CLICK_ID_PRIORITY = ("gclid", "gbraid", "wbraid")


class GoogleAdsCredentials(msgspec.Struct, kw_only=True, rename="camel"):
    """OAuth client, developer token and conversion action."""

    customer_id: str
    developer_token: str
    client_id: str
    client_secret: str
    refresh_token: str
    conversion_action_id: str
    login_customer_id: str | None = None
    api_version: str = "v17"


def _digits(value: str) -> str:
    return value.replace("-", "")


def select_click_id(event: CanonicalEvent) -> tuple[str, str] | None:
    """Return the first available ``(field, value)`` among gclid, gbraid, wbraid."""
    for field in _CLICK_ID_PRIORITY:
        if value := event.click_ids.get(field):
            return (field, value)
    return None


def _conversion_time(event: CanonicalEvent) -> str:
    return event.occurred_at.strftime("%Y-%m-%d %H:%M:%S%z").replace(
        "+0000", "+00:00"
    )


def _user_identifiers(event: CanonicalEvent) -> list[dict[str, str]]:
    identifiers = []
    if email := hash_identifier(event.user.email):
        identifiers.append({"hashedEmail": email})
    if phone := hash_phone(event.user.phone):
        identifiers.append({"hashedPhoneNumber": phone})
    return identifiers


class GoogleAdsConnector(HttpConnector[GoogleAdsCredentials]):
    """Upload click conversions to a Google Ads customer."""

    destination_type = DestinationType.GOOGLE_ADS_OFFLINE
    credentials_type = GoogleAdsCredentials

    async def _access_token(self, credentials: GoogleAdsCredentials) -> str:
        response = await self._post(
            TOKEN_URL,
            data={
                "grant_type": "refresh_token",
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "refresh_token": credentials.refresh_token,
            },
        )
        token = self._json(response).get("access_token")
        if not isinstance(token, str) or not token:
            raise ConnectorError.rejected("OAuth response missing access_token")
        return token

    async def _deliver(
        self, credentials: GoogleAdsCredentials, event: CanonicalEvent
    ) -> SendOutcome:
        click = select_click_id(event)
        if click is None:
            return SendOutcome.skip("event has no gclid, gbraid or wbraid")
        field, click_id = click

        customer_id = _digits(credentials.customer_id)
        conversion = compact(
            {
                "conversionAction": (
                    f"customers/{customer_id}/conversionActions/"
                    f"{credentials.conversion_action_id}"
                ),
                "conversionDateTime": _conversion_time(event),
                field: click_id,
                "conversionValue": event.value,
                "currencyCode": event.currency,
                "orderId": event.dedupe_id,
                "userIdentifiers": _user_identifiers(event),
            }
        )

        token = await self._access_token(credentials)
        headers = {
            "Authorization": f"Bearer {token}",
            "developer-token": credentials.developer_token,
        }
        if credentials.login_customer_id:
            headers["login-customer-id"] = _digits(credentials.login_customer_id)

        response = await self._post(
            UPLOAD_URL.format(version=credentials.api_version, customer_id=customer_id),
            json={"conversions": [conversion], "partialFailure": True},
            headers=headers,
        )
        result = self._json(response)
        partial_error = result.get("partialFailureError")
        failed = 0
        if isinstance(partial_error, dict):
            details = partial_error.get("details") or [partial_error]
            failed = min(1, len(details))
        return SendOutcome.delivered(
            sent=1 - failed,
            failed=failed,
            response=result,
            status_code=response.status_code,
        )
