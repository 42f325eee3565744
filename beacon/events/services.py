"""Idempotent persistence of accepted events."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from beacon.events.errors import EventPersistError
from beacon.events.storage import Event

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from beacon.events.models import EventEnvelope

__all__ = ["CompanionRows", "EventStore", "InsertResult"]

type CompanionRows = typ.Callable[[Event], cabc.Iterable[object]]


@dc.dataclass(frozen=True, slots=True)
class InsertResult:
    """Outcome of :meth:`EventStore.insert_if_absent`."""

    record: Event
    was_new: bool


class EventStore:
    """Write-once store of events keyed by an optional idempotency key."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory used for reads and inserts."""
        self._session_factory = session_factory

    async def insert_if_absent(
        self,
        envelope: EventEnvelope,
        *,
        companions: CompanionRows | None = None,
    ) -> InsertResult:
        """Persist ``envelope`` unless its idempotency key is already stored.

        The unique constraint on ``external_event_id`` is the only
        serialisation point: concurrent submissions of the same key race
        to commit and the loser reloads the winner's row. Envelopes
        without a key are always inserted.

        Parameters
        ----------
        envelope
            Validated event to store.
        companions
            Optional callable returning extra rows, such as the forwarding
            job, that must commit in the same transaction as a new event.
            It is not invoked for duplicates.

        Returns
        -------
        InsertResult
            The stored row and whether this call created it.

        Raises
        ------
        EventPersistError
            If the insert collided but the existing row cannot be found.

        """
        key = envelope.external_event_id
        async with self._session_factory() as session:
            if key is not None:
                existing = await self._load_by_key(session, key)
                if existing is not None:
                    return InsertResult(record=existing, was_new=False)

            event = envelope.to_row()
            session.add(event)
            if companions is not None:
                session.add_all(list(companions(event)))

            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                if key is None:
                    raise
                existing = await self._load_by_key(session, key)
                if existing is None:
                    raise EventPersistError(key) from exc
                return InsertResult(record=existing, was_new=False)

            return InsertResult(record=event, was_new=True)

    async def find_by_id(self, event_id: str) -> Event | None:
        """Return the event with ``event_id``, or ``None`` when absent."""
        async with self._session_factory() as session:
            return await session.get(Event, event_id)

    @staticmethod
    async def _load_by_key(session: AsyncSession, key: str) -> Event | None:
        stmt = select(Event).where(Event.external_event_id == key)
        return await session.scalar(stmt)
