"""Microsoft Advertising offline conversion connector.

Microsoft exposes offline conversion upload only through its SOAP
Campaign Management service, so the request envelope is built and the
response inspected with :mod:`xml.etree.ElementTree`.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ
import xml.etree.ElementTree as ET

import msgspec

from beacon.connectors.base import ConnectorError, HttpConnector, SendOutcome
from beacon.connectors.hashing import hash_identifier, hash_phone
from beacon.routing.types import DestinationType

if typ.TYPE_CHECKING:
    from beacon.events.canonical import CanonicalEvent

TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
SERVICE_URL = (
    "https://campaign.api.bingads.microsoft.com/Api/Advertiser/"
    "CampaignManagement/v13/CampaignManagementService.svc"
)
_HTTP_ERROR_STATUS_THRESHOLD = 400
OAUTH_SCOPE = "https://ads.microsoft.com/msads.manage"

SOAP_NS = "http://schemas.xmlsoap.org/soap/envelope/"
CM_NS = "https://bingads.microsoft.com/CampaignManagement/v13"


class MicrosoftAdsCredentials(msgspec.Struct, kw_only=True, rename="camel"):
    """OAuth client, developer token, account and conversion goal."""

    developer_token: str
    client_id: str
    client_secret: str
    refresh_token: str
    customer_id: str
    account_id: str
    conversion_name: str


def _child(parent: ET.Element, tag: str, text: str | None = None) -> ET.Element:
    element = ET.SubElement(parent, f"{{{CM_NS}}}{tag}")
    if text is not None:
        element.text = text
    return element


def build_envelope(
    credentials: MicrosoftAdsCredentials,
    access_token: str,
    event: CanonicalEvent,
    msclkid: str,
) -> bytes:
    """Return the ``ApplyOfflineConversions`` SOAP request for one event."""
    ET.register_namespace("s", SOAP_NS)
    envelope = ET.Element(f"{{{SOAP_NS}}}Envelope")
    header = ET.SubElement(envelope, f"{{{SOAP_NS}}}Header")
    _child(header, "ApplicationToken", credentials.developer_token)
    _child(header, "AuthenticationToken", access_token)
    _child(header, "CustomerId", credentials.customer_id)
    _child(header, "CustomerAccountId", credentials.account_id)

    body = ET.SubElement(envelope, f"{{{SOAP_NS}}}Body")
    request = _child(body, "ApplyOfflineConversionsRequest")
    conversions = _child(request, "OfflineConversions")
    conversion = _child(conversions, "OfflineConversion")
    _child(conversion, "ConversionCurrencyCode", event.currency or "USD")
    _child(conversion, "ConversionName", credentials.conversion_name)
    _child(conversion, "ConversionTime", event.occurred_at.isoformat())
    _child(conversion, "ConversionValue", str(event.value or 0))
    _child(conversion, "MicrosoftClickId", msclkid)
    if email := hash_identifier(event.user.email, strip_spaces=True):
        _child(conversion, "HashedEmailAddress", email)
    if phone := hash_phone(event.user.phone):
        _child(conversion, "HashedPhoneNumber", phone)
    return ET.tostring(envelope, encoding="utf-8", xml_declaration=True)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_response(xml_text: str) -> SendOutcome:
    """Evaluate an ``ApplyOfflineConversions`` SOAP response.

    A SOAP fault is a total failure; ``BatchError`` entries under
    ``PartialErrors`` count as rejected conversions.
    """
    try:
        root = ET.fromstring(xml_text)  # noqa: S314 - response from a fixed HTTPS endpoint
    except ET.ParseError as exc:
        raise ConnectorError.rejected(f"unparseable SOAP response: {exc}") from exc

    fault_text: str | None = None
    batch_errors = 0
    for element in root.iter():
        name = _local_name(element.tag)
        if name == "Fault":
            fault_text = fault_text or "SOAP fault"
        elif name == "faultstring" and element.text:
            fault_text = element.text
        elif name == "BatchError":
            batch_errors += 1
    if fault_text is not None:
        return SendOutcome.failure(fault_text, response=xml_text)

    failed = min(1, batch_errors)
    return SendOutcome.delivered(sent=1 - failed, failed=failed, response=xml_text)


class MicrosoftAdsConnector(HttpConnector[MicrosoftAdsCredentials]):
    """Upload offline conversions keyed by Microsoft click id."""

    destination_type = DestinationType.MICROSOFT_ADS_OFFLINE
    credentials_type = MicrosoftAdsCredentials

    async def _access_token(self, credentials: MicrosoftAdsCredentials) -> str:
        response = await self._post(
            TOKEN_URL,
            data={
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "refresh_token": credentials.refresh_token,
                "grant_type": "refresh_token",
                "scope": OAUTH_SCOPE,
            },
        )
        token = self._json(response).get("access_token")
        if not isinstance(token, str) or not token:
            raise ConnectorError.rejected("OAuth response missing access_token")
        return token

    async def _deliver(
        self, credentials: MicrosoftAdsCredentials, event: CanonicalEvent
    ) -> SendOutcome:
        msclkid = event.click_ids.get("msclkid")
        if not msclkid:
            return SendOutcome.skip("event has no msclkid")

        token = await self._access_token(credentials)
        envelope = build_envelope(credentials, token, event, msclkid)
        response = await self._client.post(
            SERVICE_URL,
            content=envelope,
            headers={
                "Content-Type": "text/xml; charset=utf-8",
                "SOAPAction": "ApplyOfflineConversions",
                "Authorization": f"Bearer {token}",
                "DeveloperToken": credentials.developer_token,
                "CustomerId": credentials.customer_id,
                "CustomerAccountId": credentials.account_id,
            },
        )
        # SOAP faults arrive with HTTP 500, so the body is inspected first.
        outcome = parse_response(response.text)
        if outcome.ok and response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise ConnectorError.http_status(response.status_code, response.text)
        return dc.replace(outcome, status_code=response.status_code)
