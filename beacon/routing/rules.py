"""Static routing policy from event names to destination types.

Event names are classified into :class:`EventClass` members, each tagged
with the capabilities that should receive it. Destinations are tagged
with a single capability in :mod:`beacon.routing.types`. Routing is the
join of the two tables, so adding an event class or destination type
means adding a row rather than editing control flow.
"""

from __future__ import annotations

import enum
import functools
import types

from beacon.routing.types import Capability, DestinationType

__all__ = ["EVENT_CAPABILITIES", "EventClass", "classify", "routes_for"]


class EventClass(enum.StrEnum):
    """Event names recognised by the routing policy."""

    PAGE_VIEW = "page_view"
    CTA_CLICK = "cta_click"
    PHONE_CLICK = "phone_click"
    FORM_START = "form_start"
    LEAD_SUBMITTED = "lead_submitted"
    BOOKING_STARTED = "booking_started"
    BOOKING_CONFIRMED = "booking_confirmed"
    ARTICLE_VIEW = "article_view"
    ARTICLE_READ_50 = "article_read_50"
    MEDIA_VIEW = "media_view"
    JOB_COMPLETED = "job_completed"


_ENGAGEMENT = frozenset({Capability.ANALYTICS, Capability.OUTBOUND_WEBHOOK})
_CONVERSION = frozenset({Capability.AD_CONVERSION, Capability.OUTBOUND_WEBHOOK})
_BOTH = _ENGAGEMENT | _CONVERSION

EVENT_CAPABILITIES: types.MappingProxyType[EventClass, frozenset[Capability]] = (
    types.MappingProxyType(
        {
            EventClass.PAGE_VIEW: _ENGAGEMENT,
            EventClass.CTA_CLICK: _ENGAGEMENT,
            EventClass.PHONE_CLICK: _ENGAGEMENT,
            EventClass.FORM_START: _ENGAGEMENT,
            EventClass.LEAD_SUBMITTED: _BOTH,
            EventClass.BOOKING_STARTED: _ENGAGEMENT,
            EventClass.BOOKING_CONFIRMED: _BOTH,
            EventClass.ARTICLE_VIEW: _ENGAGEMENT,
            EventClass.ARTICLE_READ_50: _ENGAGEMENT,
            EventClass.MEDIA_VIEW: _ENGAGEMENT,
            EventClass.JOB_COMPLETED: _CONVERSION,
        }
    )
)


def classify(event_name: str) -> EventClass | None:
    """Return the event class for ``event_name``, or ``None`` if unknown."""
    try:
        return EventClass(event_name)
    except ValueError:
        return None


@functools.cache
def routes_for(event_name: str) -> tuple[DestinationType, ...]:
    """Return the destination types that should receive ``event_name``.

    The result is deduplicated and ordered by :class:`DestinationType`
    declaration order. Unknown event names route nowhere. Whether a type
    is enabled, and per-destination include/exclude lists, are applied at
    dispatch time.

    Parameters
    ----------
    event_name
        Name of the accepted event.

    Returns
    -------
    tuple[DestinationType, ...]
        Intended destination types.

    """
    event_class = classify(event_name)
    if event_class is None:
        return ()
    capabilities = EVENT_CAPABILITIES[event_class]
    return tuple(
        destination
        for destination in DestinationType
        if destination.capability in capabilities
    )
