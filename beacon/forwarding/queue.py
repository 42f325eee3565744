"""Durable forwarding queue backed by the ``forwarding_jobs`` table.

Claims are a single conditional ``UPDATE``: a job is claimable when it is
queued or scheduled and visible, or when it is in flight with an expired
lease. Only the worker whose update matched a row proceeds, so at most
one worker holds a job at a time. Transitions out of ``in_flight`` are
fenced on ``claimed_by`` so a worker whose lease was taken over cannot
overwrite the new holder's progress.
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

from sqlalchemy import and_, delete, or_, select, update

from beacon.common.time import utcnow
from beacon.events.storage import new_id
from beacon.forwarding.storage import ForwardingJob, JobState
from beacon.logging import get_logger, log_debug, log_info
from beacon.routing.types import DestinationType

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from sqlalchemy.sql.elements import ColumnElement

__all__ = ["ClaimedJob", "ForwardingQueue"]

logger = get_logger(__name__)

_DEFAULT_LEASE = dt.timedelta(seconds=60)


@dc.dataclass(frozen=True, slots=True)
class ClaimedJob:
    """Snapshot of a job taken at claim time.

    ``attempts`` already counts the attempt this claim represents.
    """

    id: str
    event_id: str
    intended: tuple[DestinationType, ...]
    attempts: int
    max_attempts: int
    delivered: frozenset[str]
    outcomes: dict[str, typ.Any]

    @classmethod
    def from_row(cls, row: ForwardingJob) -> ClaimedJob:
        """Build a snapshot from a freshly claimed row."""
        return cls(
            id=row.id,
            event_id=row.event_id,
            intended=tuple(DestinationType(value) for value in row.intended or []),
            attempts=row.attempts,
            max_attempts=row.max_attempts,
            delivered=frozenset(row.delivered or []),
            outcomes=dict(row.outcomes or {}),
        )


class ForwardingQueue:
    """Create, claim and transition forwarding jobs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_attempts: int = 5,
        lease: dt.timedelta | None = None,
        discard_completed: bool = True,
        clock: typ.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Configure the queue.

        Parameters
        ----------
        session_factory
            Factory for sessions against the shared database.
        max_attempts
            Attempt budget recorded on new jobs.
        lease
            Exclusive claim duration; defaults to sixty seconds.
        discard_completed
            Delete jobs on completion instead of keeping them.
        clock
            Source of the current time, injectable for tests.

        """
        self._session_factory = session_factory
        self._max_attempts = max_attempts
        self._lease = lease if lease is not None else _DEFAULT_LEASE
        self._discard_completed = discard_completed
        self._clock = clock

    def build_job(
        self, event_id: str, intended: cabc.Iterable[DestinationType]
    ) -> ForwardingJob:
        """Return an unsaved job for ``event_id``, visible immediately.

        The caller adds it to the transaction that inserts the event so
        the event and its job commit together.
        """
        now = self._clock()
        return ForwardingJob(
            id=new_id(),
            event_id=event_id,
            intended=[str(value) for value in intended],
            state=JobState.QUEUED,
            attempts=0,
            max_attempts=self._max_attempts,
            visible_at=now,
            delivered=[],
            outcomes={},
            created_at=now,
            updated_at=now,
        )

    def _claimable(self, now: dt.datetime) -> ColumnElement[bool]:
        return or_(
            and_(
                ForwardingJob.state.in_(
                    [JobState.QUEUED, JobState.RETRY_SCHEDULED]
                ),
                ForwardingJob.visible_at <= now,
            ),
            and_(
                ForwardingJob.state == JobState.IN_FLIGHT,
                ForwardingJob.lease_expires_at <= now,
            ),
        )

    async def claim(
        self, job_id: str, worker_id: str, *, now: dt.datetime | None = None
    ) -> ClaimedJob | None:
        """Atomically take the lease on ``job_id`` and count one attempt.

        Returns
        -------
        ClaimedJob | None
            The claimed snapshot, or ``None`` when the job is absent, not
            yet visible, finished, or leased by another worker.

        """
        now = now or self._clock()
        stmt = (
            update(ForwardingJob)
            .where(ForwardingJob.id == job_id, self._claimable(now))
            .values(
                state=JobState.IN_FLIGHT,
                claimed_by=worker_id,
                lease_expires_at=now + self._lease,
                attempts=ForwardingJob.attempts + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            if result.rowcount != 1:
                log_debug(logger, "Job %s not claimable by %s", job_id, worker_id)
                return None
            row = await session.get(ForwardingJob, job_id, populate_existing=True)
            if row is None:
                return None
            return ClaimedJob.from_row(row)

    async def get(self, job_id: str) -> ForwardingJob | None:
        """Return the job row, or ``None`` when absent."""
        async with self._session_factory() as session:
            return await session.get(ForwardingJob, job_id)

    async def get_for_event(self, event_id: str) -> ForwardingJob | None:
        """Return the job created for ``event_id``, if it still exists."""
        async with self._session_factory() as session:
            return await session.scalar(
                select(ForwardingJob).where(ForwardingJob.event_id == event_id)
            )

    async def _finish(
        self,
        job_id: str,
        worker_id: str,
        values: dict[str, typ.Any],
    ) -> bool:
        stmt = (
            update(ForwardingJob)
            .where(
                ForwardingJob.id == job_id,
                ForwardingJob.state == JobState.IN_FLIGHT,
                ForwardingJob.claimed_by == worker_id,
            )
            .values(**values, updated_at=self._clock())
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount == 1

    async def mark_completed(
        self,
        job_id: str,
        worker_id: str,
        *,
        delivered: cabc.Collection[str],
        outcomes: dict[str, typ.Any],
    ) -> bool:
        """Finish a job whose destinations have all been delivered.

        The row is deleted when the queue discards completed jobs.
        Returns False when this worker no longer holds the lease.
        """
        if not self._discard_completed:
            return await self._finish(
                job_id,
                worker_id,
                {
                    "state": JobState.COMPLETED,
                    "delivered": sorted(delivered),
                    "outcomes": outcomes,
                    "claimed_by": None,
                    "lease_expires_at": None,
                    "last_error": None,
                },
            )
        stmt = delete(ForwardingJob).where(
            ForwardingJob.id == job_id,
            ForwardingJob.state == JobState.IN_FLIGHT,
            ForwardingJob.claimed_by == worker_id,
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount == 1

    async def schedule_retry(
        self,
        job_id: str,
        worker_id: str,
        *,
        delay: dt.timedelta,
        delivered: cabc.Collection[str],
        outcomes: dict[str, typ.Any],
        error: str,
    ) -> bool:
        """Release the lease and hide the job for ``delay``."""
        return await self._finish(
            job_id,
            worker_id,
            {
                "state": JobState.RETRY_SCHEDULED,
                "visible_at": self._clock() + delay,
                "delivered": sorted(delivered),
                "outcomes": outcomes,
                "claimed_by": None,
                "lease_expires_at": None,
                "last_error": error,
            },
        )

    async def mark_exhausted(
        self,
        job_id: str,
        worker_id: str,
        *,
        delivered: cabc.Collection[str],
        outcomes: dict[str, typ.Any],
        error: str,
    ) -> bool:
        """Park a job that has used its attempt budget."""
        return await self._finish(
            job_id,
            worker_id,
            {
                "state": JobState.FAILED_EXHAUSTED,
                "delivered": sorted(delivered),
                "outcomes": outcomes,
                "claimed_by": None,
                "lease_expires_at": None,
                "last_error": error,
            },
        )

    async def list_due(
        self, limit: int = 100, *, now: dt.datetime | None = None
    ) -> list[str]:
        """Return ids of jobs a worker could claim right now, oldest first."""
        now = now or self._clock()
        async with self._session_factory() as session:
            ids = await session.scalars(
                select(ForwardingJob.id)
                .where(self._claimable(now))
                .order_by(ForwardingJob.visible_at)
                .limit(limit)
            )
            return list(ids)

    async def list_failed(self, limit: int = 100) -> list[ForwardingJob]:
        """Return exhausted jobs, most recently updated first."""
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(ForwardingJob)
                .where(ForwardingJob.state == JobState.FAILED_EXHAUSTED)
                .order_by(ForwardingJob.updated_at.desc())
                .limit(limit)
            )
            return list(rows)

    async def requeue(self, job_id: str) -> bool:
        """Give an exhausted job a fresh attempt budget.

        Destinations already delivered stay delivered. Returns False when
        the job does not exist or is not exhausted.
        """
        now = self._clock()
        stmt = (
            update(ForwardingJob)
            .where(
                ForwardingJob.id == job_id,
                ForwardingJob.state == JobState.FAILED_EXHAUSTED,
            )
            .values(
                state=JobState.QUEUED,
                attempts=0,
                visible_at=now,
                last_error=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        requeued = result.rowcount == 1
        if requeued:
            log_info(logger, "Job %s requeued by operator", job_id)
        return requeued
