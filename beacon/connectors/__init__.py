"""Platform connectors behind one ``send(credentials, event)`` contract."""

from __future__ import annotations

from .base import Connector, ConnectorError, HttpConnector, SendOutcome
from .hashing import hash_identifier, hash_phone, normalize_phone
from .registry import (
    CONNECTOR_CLASSES,
    ConnectorRegistry,
    build_connectors,
    validate_credentials,
)

__all__ = [
    "CONNECTOR_CLASSES",
    "Connector",
    "ConnectorError",
    "ConnectorRegistry",
    "HttpConnector",
    "SendOutcome",
    "build_connectors",
    "hash_identifier",
    "hash_phone",
    "normalize_phone",
    "validate_credentials",
]
