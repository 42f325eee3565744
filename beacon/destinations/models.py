"""Administrative schemas for destination management."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import msgspec

from beacon.routing.types import DestinationType

__all__ = ["DestinationInput", "DestinationView", "ResolvedDestination"]


class DestinationInput(msgspec.Struct, kw_only=True, rename="camel"):
    """Body of ``POST /admin/destinations``."""

    type: DestinationType
    name: typ.Annotated[str, msgspec.Meta(min_length=1, max_length=255)]
    is_enabled: bool = False
    config: dict[str, typ.Any] = msgspec.field(default_factory=dict)
    include_events: list[str] = msgspec.field(default_factory=list)
    exclude_events: list[str] = msgspec.field(default_factory=list)


class DestinationView(msgspec.Struct, kw_only=True, rename="camel"):
    """Administrative listing entry with decrypted configuration."""

    id: str
    type: DestinationType
    name: str
    is_enabled: bool
    config: dict[str, typ.Any] | None
    include_events: list[str]
    exclude_events: list[str]
    config_error: str | None = None


@dc.dataclass(frozen=True, slots=True)
class ResolvedDestination:
    """Destination with configuration decrypted for one dispatch attempt."""

    id: str
    type: DestinationType
    name: str
    config: typ.Mapping[str, typ.Any] | None
    config_error: str | None = None
