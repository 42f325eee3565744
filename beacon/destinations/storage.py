"""Persistence model for configured delivery destinations."""

from __future__ import annotations

import datetime as dt  # noqa: TC003

from sqlalchemy import JSON, Boolean, Enum, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from beacon.common.time import utcnow
from beacon.events.storage import Base, UTCDateTime, new_id
from beacon.routing.types import DestinationType


class Destination(Base):
    """A configured third-party target with sealed credentials.

    ``config_enc`` always holds credential-vault ciphertext; decrypted
    configuration never passes through this model.
    """

    __tablename__ = "destinations"
    __table_args__ = (
        UniqueConstraint("type", "name", name="uq_destinations_type_name"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    type: Mapped[DestinationType] = mapped_column(
        Enum(
            DestinationType,
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            validate_strings=True,
        ),
    )
    name: Mapped[str] = mapped_column(String(255))
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    config_enc: Mapped[str] = mapped_column(Text())
    include_events: Mapped[list[str]] = mapped_column(JSON, default=list)
    exclude_events: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    def accepts(self, event_name: str) -> bool:
        """Apply this destination's include and exclude filters to ``event_name``."""
        if self.include_events and event_name not in self.include_events:
            return False
        return event_name not in (self.exclude_events or [])
