"""Lookup from destination type to the connector that serves it."""

from __future__ import annotations

import types
import typing as typ

import msgspec

from beacon.connectors.ga4 import GA4Connector
from beacon.connectors.google_ads import GoogleAdsConnector
from beacon.connectors.meta import MetaConnector
from beacon.connectors.microsoft_ads import MicrosoftAdsConnector
from beacon.connectors.pinterest import PinterestConnector
from beacon.connectors.posthog import PostHogConnector
from beacon.connectors.snapchat import SnapchatConnector
from beacon.connectors.tiktok import TikTokConnector
from beacon.connectors.webhook import WebhookConnector

if typ.TYPE_CHECKING:
    import httpx

    from beacon.connectors.base import Connector
    from beacon.routing.types import DestinationType

__all__ = [
    "CONNECTOR_CLASSES",
    "ConnectorRegistry",
    "build_connectors",
    "validate_credentials",
]

CONNECTOR_CLASSES = (
    PostHogConnector,
    GA4Connector,
    MetaConnector,
    GoogleAdsConnector,
    MicrosoftAdsConnector,
    TikTokConnector,
    SnapchatConnector,
    PinterestConnector,
    WebhookConnector,
)

type ConnectorRegistry = types.MappingProxyType[DestinationType, Connector]


def build_connectors(client: httpx.AsyncClient) -> ConnectorRegistry:
    """Instantiate one connector per destination type sharing ``client``."""
    return types.MappingProxyType(
        {cls.destination_type: cls(client) for cls in CONNECTOR_CLASSES}
    )


def validate_credentials(
    destination_type: DestinationType, config: typ.Mapping[str, typ.Any]
) -> str | None:
    """Return a validation message when ``config`` does not suit the connector."""
    for cls in CONNECTOR_CLASSES:
        if cls.destination_type is destination_type:
            try:
                msgspec.convert(dict(config), cls.credentials_type)
            except msgspec.ValidationError as exc:
                return str(exc)
            return None
    return f"no connector for {destination_type}"
