"""Configured delivery destinations and their sealed credentials."""

from __future__ import annotations

from .errors import DestinationConfigError
from .models import DestinationInput, DestinationView, ResolvedDestination
from .service import DestinationRegistry
from .storage import Destination

__all__ = [
    "Destination",
    "DestinationConfigError",
    "DestinationInput",
    "DestinationRegistry",
    "DestinationView",
    "ResolvedDestination",
]
