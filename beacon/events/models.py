"""Inbound event schemas and the envelope persisted by the event store.

Request bodies are decoded with msgspec into camelCase ``Struct`` types,
then converted into :class:`EventEnvelope`, the storage-facing shape
shared by the tracking and conversion endpoints.
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

import msgspec

from beacon.events.errors import (
    TimezoneAwareRequiredError,
    UnsupportedPayloadTypeError,
)
from beacon.events.storage import Event, new_id

__all__ = [
    "CONSENT_FLAGS",
    "ConsentState",
    "ConversionInput",
    "EventEnvelope",
    "TrackEventInput",
    "normalise_payload",
]

type ConsentValue = typ.Literal["granted", "denied"]
type JSONValue = (
    dict[str, JSONValue] | list[JSONValue] | str | int | float | bool | None
)

# Bounds match the ``events`` and ``conversions`` column widths.
EventName = typ.Annotated[str, msgspec.Meta(min_length=1, max_length=128)]
ConversionStatus = typ.Annotated[str, msgspec.Meta(min_length=1, max_length=64)]
SourceStr = typ.Annotated[str, msgspec.Meta(max_length=32)]
ShortStr = typ.Annotated[str, msgspec.Meta(max_length=255)]
ClickId = typ.Annotated[str, msgspec.Meta(max_length=512)]
CurrencyCode = typ.Annotated[str, msgspec.Meta(min_length=3, max_length=3)]

CONSENT_FLAGS = (
    "analytics_storage",
    "ad_storage",
    "ad_user_data",
    "ad_personalization",
)


class ConsentState(msgspec.Struct, kw_only=True, frozen=True):
    """Four independent consent flags, each denied unless granted."""

    analytics_storage: ConsentValue = "denied"
    ad_storage: ConsentValue = "denied"
    ad_user_data: ConsentValue = "denied"
    ad_personalization: ConsentValue = "denied"

    @classmethod
    def all_granted(cls) -> ConsentState:
        """Consent used for server-originated conversions."""
        return cls(
            analytics_storage="granted",
            ad_storage="granted",
            ad_user_data="granted",
            ad_personalization="granted",
        )

    @classmethod
    def from_mapping(cls, raw: typ.Mapping[str, str] | None) -> ConsentState:
        """Rebuild consent from its stored JSON form."""
        return msgspec.convert(raw or {}, cls)

    def granted(self, flag: str) -> bool:
        """Return True when ``flag`` is granted."""
        return getattr(self, flag) == "granted"

    def as_dict(self) -> dict[str, str]:
        """Return the JSON form stored on the event row."""
        return {flag: getattr(self, flag) for flag in CONSENT_FLAGS}


class TrackEventInput(msgspec.Struct, kw_only=True, rename="camel"):
    """Body of ``POST /track``."""

    name: EventName
    source: SourceStr = "web"
    session_id: ShortStr | None = None
    device_id: ShortStr | None = None
    user_id: ShortStr | None = None
    utm_source: ShortStr | None = None
    utm_medium: ShortStr | None = None
    utm_campaign: ShortStr | None = None
    utm_term: ShortStr | None = None
    utm_content: ShortStr | None = None
    referrer: str | None = None
    landing_url: str | None = None
    gclid: ClickId | None = None
    gbraid: ClickId | None = None
    wbraid: ClickId | None = None
    msclkid: ClickId | None = None
    fbclid: ClickId | None = None
    ttclid: ClickId | None = None
    external_event_id: ShortStr | None = None
    consent: ConsentState = msgspec.field(default_factory=ConsentState)
    payload: dict[str, typ.Any] = msgspec.field(default_factory=dict)


class ConversionInput(msgspec.Struct, kw_only=True, rename="camel"):
    """Body of ``POST /conversions``."""

    status: ConversionStatus
    value_cents: typ.Annotated[int, msgspec.Meta(ge=0)] | None = None
    currency: CurrencyCode = "USD"
    lead_id: ShortStr | None = None
    job_id: ShortStr | None = None
    invoice_id: ShortStr | None = None
    session_id: ShortStr | None = None
    device_id: ShortStr | None = None
    user_id: ShortStr | None = None
    utm_source: ShortStr | None = None
    utm_medium: ShortStr | None = None
    utm_campaign: ShortStr | None = None
    gclid: ClickId | None = None
    msclkid: ClickId | None = None
    external_event_id: ShortStr | None = None
    payload: dict[str, typ.Any] = msgspec.field(default_factory=dict)


def _normalise_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        raise TimezoneAwareRequiredError.for_payload()
    return value.astimezone(dt.UTC).isoformat()


def normalise_payload(payload: object) -> JSONValue:
    """Deep-copy ``payload`` into JSON-safe values.

    Mappings, lists, scalars and aware datetimes are accepted; datetimes
    become ISO-8601 strings. Anything else raises
    :class:`UnsupportedPayloadTypeError`.
    """
    match payload:
        case dict():
            return {str(k): normalise_payload(v) for k, v in payload.items()}
        case list() | tuple():
            return [normalise_payload(item) for item in payload]
        case dt.datetime():
            return _normalise_datetime(payload)
        case None | bool() | int() | float() | str():
            return payload
        case _:
            raise UnsupportedPayloadTypeError(type(payload).__name__)


@dc.dataclass(frozen=True, slots=True)
class EventEnvelope:
    """Validated event ready for :meth:`EventStore.insert_if_absent`."""

    name: str
    source: str = "web"
    consent: ConsentState = dc.field(default_factory=ConsentState)
    payload: dict[str, typ.Any] = dc.field(default_factory=dict)
    external_event_id: str | None = None
    session_id: str | None = None
    device_id: str | None = None
    user_id: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_term: str | None = None
    utm_content: str | None = None
    referrer: str | None = None
    landing_url: str | None = None
    gclid: str | None = None
    gbraid: str | None = None
    wbraid: str | None = None
    msclkid: str | None = None
    fbclid: str | None = None
    ttclid: str | None = None

    @classmethod
    def from_track(cls, body: TrackEventInput) -> EventEnvelope:
        """Build an envelope from a decoded tracking request."""
        fields = {
            field.name: getattr(body, field.name)
            for field in dc.fields(cls)
            if hasattr(body, field.name)
        }
        return cls(**fields)

    @classmethod
    def from_conversion(
        cls, body: ConversionInput, conversion_id: str
    ) -> EventEnvelope:
        """Build the synthetic event that accompanies a conversion.

        Server-originated conversions carry fully granted consent; the
        business fields and ``conversion_id`` are folded into the payload
        so connectors and webhook receivers can link the two rows.
        """
        payload = dict(body.payload)
        payload.update(
            {
                key: value
                for key, value in (
                    ("conversion_id", conversion_id),
                    ("value_cents", body.value_cents),
                    ("currency", body.currency),
                    ("lead_id", body.lead_id),
                    ("job_id", body.job_id),
                    ("invoice_id", body.invoice_id),
                )
                if value is not None
            }
        )
        return cls(
            name=body.status,
            source="server",
            consent=ConsentState.all_granted(),
            payload=payload,
            external_event_id=body.external_event_id,
            session_id=body.session_id,
            device_id=body.device_id,
            user_id=body.user_id,
            utm_source=body.utm_source,
            utm_medium=body.utm_medium,
            utm_campaign=body.utm_campaign,
            gclid=body.gclid,
            msclkid=body.msclkid,
        )

    def to_row(self) -> Event:
        """Return an unsaved :class:`Event` with a normalised payload copy."""
        payload = normalise_payload(self.payload)
        columns = {
            field.name: getattr(self, field.name)
            for field in dc.fields(self)
            if field.name not in {"consent", "payload"}
        }
        return Event(
            id=new_id(),
            **columns,
            consent=self.consent.as_dict(),
            payload=typ.cast("dict[str, typ.Any]", payload),
        )
