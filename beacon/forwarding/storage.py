"""Persistence model for queued forwarding work."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum
import typing as typ

from sqlalchemy import JSON, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from beacon.common.time import utcnow
from beacon.events.storage import Base, UTCDateTime, new_id


class JobState(enum.StrEnum):
    """Lifecycle of a forwarding job."""

    QUEUED = "queued"
    IN_FLIGHT = "in_flight"
    RETRY_SCHEDULED = "retry_scheduled"
    COMPLETED = "completed"
    FAILED_EXHAUSTED = "failed_exhausted"


class ForwardingJob(Base):
    """Delivery work for one accepted event across its intended destinations.

    ``delivered`` lists destination ids that no longer need delivery so a
    retry only revisits the destinations that failed.
    """

    __tablename__ = "forwarding_jobs"
    __table_args__ = (
        Index("ix_forwarding_jobs_state_visible_at", "state", "visible_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    event_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("events.id", ondelete="CASCADE"), unique=True
    )
    intended: Mapped[list[str]] = mapped_column(JSON, default=list)
    state: Mapped[JobState] = mapped_column(
        Enum(
            JobState,
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            validate_strings=True,
        ),
        default=JobState.QUEUED,
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=5)
    visible_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    claimed_by: Mapped[str | None] = mapped_column(String(128), default=None)
    lease_expires_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    delivered: Mapped[list[str]] = mapped_column(JSON, default=list)
    outcomes: Mapped[dict[str, typ.Any]] = mapped_column(JSON, default=dict)
    last_error: Mapped[str | None] = mapped_column(Text(), default=None)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )
