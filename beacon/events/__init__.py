"""Event store: accepted events, conversions and their idempotency."""

from __future__ import annotations

from .canonical import CanonicalEvent, UserData
from .errors import (
    EventPersistError,
    TimezoneAwareRequiredError,
    UnsupportedPayloadTypeError,
)
from .models import (
    ConsentState,
    ConversionInput,
    EventEnvelope,
    TrackEventInput,
    normalise_payload,
)
from .services import EventStore, InsertResult
from .storage import Base, Conversion, Event, UTCDateTime, init_storage, new_id

__all__ = [
    "Base",
    "CanonicalEvent",
    "ConsentState",
    "Conversion",
    "ConversionInput",
    "Event",
    "EventEnvelope",
    "EventPersistError",
    "EventStore",
    "InsertResult",
    "TimezoneAwareRequiredError",
    "TrackEventInput",
    "UTCDateTime",
    "UnsupportedPayloadTypeError",
    "UserData",
    "init_storage",
    "new_id",
    "normalise_payload",
]
