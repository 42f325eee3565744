"""Platform-neutral view of a stored event handed to connectors."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from beacon.events.models import ConsentState

if typ.TYPE_CHECKING:
    import datetime as dt

    from beacon.events.storage import Event

__all__ = ["CanonicalEvent", "UserData"]

_USER_KEYS: dict[str, tuple[str, ...]] = {
    "email": ("email",),
    "phone": ("phone", "phone_number"),
    "first_name": ("first_name", "firstName"),
    "last_name": ("last_name", "lastName"),
    "city": ("city",),
    "state": ("state",),
    "zip_code": ("zip", "zip_code", "postal_code", "zipCode", "postalCode"),
    "country": ("country",),
    "ip_address": ("ip", "ip_address", "ipAddress"),
    "user_agent": ("user_agent", "userAgent"),
}
_USER_ALIASES = frozenset(alias for keys in _USER_KEYS.values() for alias in keys)


def _first_text(
    payload: typ.Mapping[str, typ.Any], keys: tuple[str, ...]
) -> str | None:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _strip_user_keys(properties: typ.Mapping[str, typ.Any]) -> dict[str, typ.Any]:
    return {k: v for k, v in properties.items() if k not in _USER_ALIASES}


@dc.dataclass(frozen=True, slots=True)
class UserData:
    """Personally identifying fields, unhashed, as captured in the payload."""

    email: str | None = None
    phone: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None

    @classmethod
    def from_payload(cls, payload: typ.Mapping[str, typ.Any]) -> UserData:
        """Extract known identity keys from a free-form payload."""
        return cls(
            **{field: _first_text(payload, keys) for field, keys in _USER_KEYS.items()}
        )


@dc.dataclass(frozen=True, slots=True)
class CanonicalEvent:
    """Everything a connector may map into a provider request.

    ``value`` is expressed in major currency units. ``user`` holds raw
    values; connectors hash them according to their provider's rules.
    """

    id: str
    name: str
    occurred_at: dt.datetime
    source: str
    consent: ConsentState
    user: UserData
    properties: dict[str, typ.Any]
    session_id: str | None = None
    device_id: str | None = None
    user_id: str | None = None
    external_event_id: str | None = None
    landing_url: str | None = None
    referrer: str | None = None
    utm: dict[str, str] = dc.field(default_factory=dict)
    click_ids: dict[str, str] = dc.field(default_factory=dict)
    value: float | None = None
    currency: str | None = None

    @classmethod
    def from_record(cls, event: Event) -> CanonicalEvent:
        """Build the canonical view of a stored :class:`Event` row."""
        payload = dict(event.payload or {})
        utm = {
            key: value
            for key, value in (
                ("source", event.utm_source),
                ("medium", event.utm_medium),
                ("campaign", event.utm_campaign),
                ("term", event.utm_term),
                ("content", event.utm_content),
            )
            if value
        }
        click_ids = {
            key: value
            for key, value in (
                ("gclid", event.gclid),
                ("gbraid", event.gbraid),
                ("wbraid", event.wbraid),
                ("msclkid", event.msclkid),
                ("fbclid", event.fbclid),
                ("ttclid", event.ttclid),
            )
            if value
        }
        return cls(
            id=event.id,
            name=event.name,
            occurred_at=event.created_at,
            source=event.source,
            consent=ConsentState.from_mapping(event.consent),
            user=UserData.from_payload(payload),
            properties=payload,
            session_id=event.session_id,
            device_id=event.device_id,
            user_id=event.user_id,
            external_event_id=event.external_event_id,
            landing_url=event.landing_url,
            referrer=event.referrer,
            utm=utm,
            click_ids=click_ids,
            value=_event_value(payload),
            currency=_event_currency(payload),
        )

    @property
    def dedupe_id(self) -> str:
        """Identifier providers use to drop repeated deliveries."""
        return self.external_event_id or self.id

    @property
    def distinct_id(self) -> str:
        """Most stable visitor identifier available, falling back to the event id."""
        return self.user_id or self.device_id or self.session_id or self.id

    @property
    def public_properties(self) -> dict[str, typ.Any]:
        """Payload properties without the raw identity keys read into ``user``."""
        return _strip_user_keys(self.properties)

    def without_user_data(self) -> CanonicalEvent:
        """Return a copy without user fields or the caller-supplied user id."""
        return dc.replace(
            self,
            user=UserData(),
            user_id=None,
            properties=self.public_properties,
        )

    def without_persistent_ids(self) -> CanonicalEvent:
        """Return a copy keyed by session only, dropping user and device ids."""
        return dc.replace(
            self,
            user=UserData(),
            user_id=None,
            device_id=None,
            properties=self.public_properties,
        )


def _event_value(payload: typ.Mapping[str, typ.Any]) -> float | None:
    cents = payload.get("value_cents")
    if isinstance(cents, int) and not isinstance(cents, bool):
        return cents / 100
    value = payload.get("value")
    if isinstance(value, int | float) and not isinstance(value, bool):
        return float(value)
    return None


def _event_currency(payload: typ.Mapping[str, typ.Any]) -> str | None:
    currency = payload.get("currency")
    return currency.upper() if isinstance(currency, str) and currency else None
