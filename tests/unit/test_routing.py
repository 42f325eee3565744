"""Unit tests for the static routing policy."""

from __future__ import annotations

import pytest

from beacon.routing import (
    Capability,
    DestinationType,
    EventClass,
    classify,
    routes_for,
)

ANALYTICS = (DestinationType.POSTHOG, DestinationType.GA4)
ADS = (
    DestinationType.META_CAPI,
    DestinationType.GOOGLE_ADS_OFFLINE,
    DestinationType.MICROSOFT_ADS_OFFLINE,
    DestinationType.TIKTOK_EVENTS_API,
    DestinationType.SNAP_CAPI,
    DestinationType.PINTEREST_CAPI,
)


@pytest.mark.parametrize(
    "name",
    [
        "page_view",
        "cta_click",
        "phone_click",
        "form_start",
        "booking_started",
        "article_view",
        "article_read_50",
        "media_view",
    ],
)
def test_engagement_events_go_to_analytics(name: str) -> None:
    """Engagement events reach analytics and webhooks but no ad platform."""
    assert routes_for(name) == (*ANALYTICS, DestinationType.WEBHOOK)


@pytest.mark.parametrize("name", ["lead_submitted", "booking_confirmed"])
def test_conversion_events_go_everywhere(name: str) -> None:
    """Lead and booking conversions reach both analytics and ad platforms."""
    assert routes_for(name) == (*ANALYTICS, *ADS, DestinationType.WEBHOOK)


def test_job_completed_skips_analytics() -> None:
    """Completed jobs are an ad conversion only."""
    assert routes_for("job_completed") == (*ADS, DestinationType.WEBHOOK)


@pytest.mark.parametrize("name", ["", "PAGE_VIEW", "purchase", "lead-submitted"])
def test_unknown_names_route_nowhere(name: str) -> None:
    """Unrecognised or differently-cased names have no destinations."""
    assert classify(name) is None
    assert routes_for(name) == ()


def test_every_event_class_is_routed() -> None:
    """No event class is left without destinations."""
    for event_class in EventClass:
        assert routes_for(event_class.value), f"{event_class} routes nowhere"


def test_routes_are_unique_and_in_declaration_order() -> None:
    """Routing output follows DestinationType order without repeats."""
    order = list(DestinationType)
    routed = routes_for("lead_submitted")
    assert len(set(routed)) == len(routed)
    assert [order.index(d) for d in routed] == sorted(order.index(d) for d in routed)


def test_every_destination_has_one_capability() -> None:
    """Capabilities are assigned to all destination types."""
    assert {d.capability for d in DestinationType} == set(Capability)
    assert DestinationType.WEBHOOK.capability is Capability.OUTBOUND_WEBHOOK
