"""Uniform delivery contract shared by every platform connector.

A connector turns a :class:`~beacon.events.CanonicalEvent` into one
provider request and reports a :class:`SendOutcome`. Connectors never
raise past :meth:`HttpConnector.send`; every failure becomes an outcome
with ``ok`` unset so the dispatch worker has a single decision surface.
"""

from __future__ import annotations

import abc
import dataclasses as dc
import typing as typ

import httpx
import msgspec

from beacon.logging import get_logger, log_exception

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from beacon.events.canonical import CanonicalEvent
    from beacon.routing.types import DestinationType

__all__ = [
    "Connector",
    "ConnectorError",
    "HttpConnector",
    "SendOutcome",
    "compact",
]

logger = get_logger(__name__)

_HTTP_ERROR_STATUS_THRESHOLD = 400
_BODY_PREVIEW_LIMIT = 500


@dc.dataclass(frozen=True, slots=True)
class SendOutcome:
    """Result of delivering one event to one destination.

    Attributes
    ----------
    ok
        True when the provider accepted at least part of the delivery, or
        when the delivery was deliberately skipped.
    sent_count
        Items the provider accepted.
    failed_count
        Items the provider rejected.
    provider_response
        Decoded provider body, when there was one.
    error
        Failure description for operators.
    skipped
        True when the connector had nothing it could send, for example
        because the event lacks the provider's click identifier.
    status_code
        HTTP status of the provider response, when one was received.

    """

    ok: bool
    sent_count: int = 0
    failed_count: int = 0
    provider_response: typ.Any = None
    error: str | None = None
    skipped: bool = False
    status_code: int | None = None

    @classmethod
    def delivered(
        cls,
        *,
        sent: int = 1,
        failed: int = 0,
        response: object = None,
        status_code: int | None = None,
    ) -> SendOutcome:
        """Tally a delivery; ``ok`` holds when anything was accepted."""
        return cls(
            ok=sent > 0,
            sent_count=sent,
            failed_count=failed,
            provider_response=response,
            error=None if sent > 0 else "provider rejected every item",
            status_code=status_code,
        )

    @classmethod
    def failure(
        cls,
        error: str,
        *,
        failed: int = 1,
        response: object = None,
        status_code: int | None = None,
    ) -> SendOutcome:
        """Report a total failure for this destination."""
        return cls(
            ok=False,
            failed_count=failed,
            provider_response=response,
            error=error,
            status_code=status_code,
        )

    @classmethod
    def skip(cls, reason: str) -> SendOutcome:
        """Report that nothing was sent and nothing should be retried."""
        return cls(ok=True, skipped=True, error=reason)

    @property
    def partial(self) -> bool:
        """True when the provider accepted some items and rejected others."""
        return self.sent_count > 0 and self.failed_count > 0

    def summary(self) -> dict[str, typ.Any]:
        """Return a JSON-safe digest stored on the forwarding job."""
        return {
            "ok": self.ok,
            "sent": self.sent_count,
            "failed": self.failed_count,
            "skipped": self.skipped,
            "status": self.status_code,
            "error": self.error,
        }


class ConnectorError(Exception):
    """Raised inside a connector to abort delivery with a described failure."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: object = None,
    ) -> None:
        """Record the provider status and body alongside the message."""
        self.status_code = status_code
        self.body = body
        super().__init__(message)

    @classmethod
    def http_status(cls, status_code: int, body: object) -> ConnectorError:
        """Create an error for a non-success HTTP response."""
        return cls(f"HTTP {status_code}", status_code=status_code, body=body)

    @classmethod
    def rejected(cls, message: str, *, body: object = None) -> ConnectorError:
        """Create an error for a provider that answered 2xx but refused the data."""
        return cls(message, body=body)


class Connector(typ.Protocol):
    """Capability interface implemented by every platform adapter."""

    destination_type: DestinationType

    async def send(
        self,
        credentials: cabc.Mapping[str, typ.Any],
        event: CanonicalEvent,
    ) -> SendOutcome:
        """Deliver ``event`` using ``credentials`` and report the outcome."""
        ...


def compact(mapping: cabc.Mapping[str, typ.Any]) -> dict[str, typ.Any]:
    """Drop ``None`` values and empty containers from ``mapping``."""
    return {
        key: value
        for key, value in mapping.items()
        if value is not None and value != {} and value != []
    }


def _decode_body(response: httpx.Response) -> object:
    try:
        return response.json()
    except ValueError:
        return response.text[:_BODY_PREVIEW_LIMIT]


class HttpConnector[CredentialsT: msgspec.Struct](abc.ABC):
    """Base class for connectors that talk JSON or XML over httpx.

    Subclasses declare ``destination_type`` and ``credentials_type`` and
    implement :meth:`_deliver`. The shared :class:`httpx.AsyncClient` is
    injected so tests can supply a mock transport.
    """

    destination_type: typ.ClassVar[DestinationType]
    credentials_type: typ.ClassVar[type[msgspec.Struct]]

    def __init__(self, client: httpx.AsyncClient) -> None:
        """Store the HTTP client used for provider calls."""
        self._client = client

    async def send(
        self,
        credentials: cabc.Mapping[str, typ.Any],
        event: CanonicalEvent,
    ) -> SendOutcome:
        """Validate credentials, deliver, and fold every error into an outcome."""
        try:
            converted = msgspec.convert(dict(credentials), self.credentials_type)
            creds = typ.cast("CredentialsT", converted)
        except msgspec.ValidationError as exc:
            return SendOutcome.failure(f"invalid credentials: {exc}")

        try:
            return await self._deliver(creds, event)
        except ConnectorError as exc:
            return SendOutcome.failure(
                str(exc), response=exc.body, status_code=exc.status_code
            )
        except httpx.TimeoutException:
            return SendOutcome.failure("provider request timed out")
        except httpx.HTTPError as exc:
            return SendOutcome.failure(f"transport error: {exc}")
        except Exception as exc:  # noqa: BLE001 - connectors must not raise
            log_exception(
                logger,
                f"{self.destination_type} connector failed for event {event.id}",
                exc,
            )
            return SendOutcome.failure(f"unexpected error: {type(exc).__name__}")

    @abc.abstractmethod
    async def _deliver(
        self, credentials: CredentialsT, event: CanonicalEvent
    ) -> SendOutcome:
        """Map, send and evaluate one delivery."""

    async def _post(
        self,
        url: str,
        *,
        json: object = None,
        content: bytes | str | None = None,
        data: cabc.Mapping[str, str] | None = None,
        headers: cabc.Mapping[str, str] | None = None,
        params: cabc.Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """POST and raise :class:`ConnectorError` on non-success status."""
        response = await self._client.post(
            url,
            json=json,
            content=content,
            data=data,
            headers=headers,
            params=params,
        )
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise ConnectorError.http_status(
                response.status_code, _decode_body(response)
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, typ.Any]:
        """Decode a JSON object body, treating anything else as empty."""
        body = _decode_body(response)
        return body if isinstance(body, dict) else {}
