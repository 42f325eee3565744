"""Persistence models for accepted events and conversions."""

from __future__ import annotations

import datetime as dt
import typing as typ
import uuid

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from beacon.common.time import utcnow
from beacon.events.errors import TimezoneAwareRequiredError

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


def new_id() -> str:
    """Return a fresh string UUID primary key."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Declarative base shared by every Beacon table."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime column that stores and returns aware UTC values on any backend."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Reject naive datetimes and convert aware ones to UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError.for_column()
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Attach UTC to values SQLite hands back without tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class Event(Base):
    """Immutable record of one accepted tracking or conversion event."""

    __tablename__ = "events"
    __table_args__ = (
        UniqueConstraint("external_event_id", name="uq_events_external_event_id"),
        Index("ix_events_name_created_at", "name", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(128))
    source: Mapped[str] = mapped_column(String(32), default="web")
    session_id: Mapped[str | None] = mapped_column(String(255), default=None)
    device_id: Mapped[str | None] = mapped_column(String(255), default=None)
    user_id: Mapped[str | None] = mapped_column(String(255), default=None)
    utm_source: Mapped[str | None] = mapped_column(String(255), default=None)
    utm_medium: Mapped[str | None] = mapped_column(String(255), default=None)
    utm_campaign: Mapped[str | None] = mapped_column(String(255), default=None)
    utm_term: Mapped[str | None] = mapped_column(String(255), default=None)
    utm_content: Mapped[str | None] = mapped_column(String(255), default=None)
    referrer: Mapped[str | None] = mapped_column(Text(), default=None)
    landing_url: Mapped[str | None] = mapped_column(Text(), default=None)
    gclid: Mapped[str | None] = mapped_column(String(512), default=None)
    gbraid: Mapped[str | None] = mapped_column(String(512), default=None)
    wbraid: Mapped[str | None] = mapped_column(String(512), default=None)
    msclkid: Mapped[str | None] = mapped_column(String(512), default=None)
    fbclid: Mapped[str | None] = mapped_column(String(512), default=None)
    ttclid: Mapped[str | None] = mapped_column(String(512), default=None)
    external_event_id: Mapped[str | None] = mapped_column(String(255), default=None)
    consent: Mapped[dict[str, str]] = mapped_column(JSON)
    payload: Mapped[dict[str, typ.Any]] = mapped_column(JSON)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


class Conversion(Base):
    """Business outcome reported by a trusted server-side caller."""

    __tablename__ = "conversions"
    __table_args__ = (Index("ix_conversions_event_id", "event_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    status: Mapped[str] = mapped_column(String(64))
    value_cents: Mapped[int | None] = mapped_column(Integer, default=None)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    lead_id: Mapped[str | None] = mapped_column(String(255), default=None)
    job_id: Mapped[str | None] = mapped_column(String(255), default=None)
    invoice_id: Mapped[str | None] = mapped_column(String(255), default=None)
    event_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("events.id", ondelete="CASCADE")
    )
    payload: Mapped[dict[str, typ.Any]] = mapped_column(JSON)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


async def init_storage(engine: AsyncEngine) -> None:
    """Create every Beacon table that is absent.

    Destination and forwarding-job models are imported here so their
    tables are registered with :class:`Base` before ``create_all`` runs.
    """
    import beacon.destinations.storage  # noqa: F401
    import beacon.forwarding.storage  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
