"""Routing policy mapping event names to destination types."""

from __future__ import annotations

from .rules import EVENT_CAPABILITIES, EventClass, classify, routes_for
from .types import DESTINATION_CAPABILITY, Capability, DestinationType

__all__ = [
    "DESTINATION_CAPABILITY",
    "EVENT_CAPABILITIES",
    "Capability",
    "DestinationType",
    "EventClass",
    "classify",
    "routes_for",
]
