"""Dispatch worker: claim a job, deliver to pending destinations, transition.

A worker invocation processes exactly one job. Destinations already
recorded as delivered are skipped, the rest are sent concurrently, and
the job is then completed, rescheduled with backoff, or marked exhausted.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import socket
import typing as typ
import uuid

from beacon.connectors.base import SendOutcome
from beacon.events.canonical import CanonicalEvent
from beacon.forwarding.consent import apply_consent
from beacon.forwarding.observability import ForwardingEventLogger
from beacon.forwarding.storage import JobState

if typ.TYPE_CHECKING:
    import datetime as dt

    from beacon.connectors.registry import ConnectorRegistry
    from beacon.destinations import DestinationRegistry, ResolvedDestination
    from beacon.events import EventStore
    from beacon.forwarding.queue import ClaimedJob, ForwardingQueue
    from beacon.forwarding.retry import RetryPolicy

__all__ = [
    "DispatchReport",
    "DispatchWorker",
    "DispatchWorkerDependencies",
    "JobNotifier",
    "notify_due_jobs",
]


class JobNotifier(typ.Protocol):
    """Wake a worker for ``job_id``, optionally after ``delay``."""

    def notify(self, job_id: str, *, delay: dt.timedelta | None = None) -> None:
        """Request that ``job_id`` be processed."""
        ...


@dc.dataclass(frozen=True, slots=True)
class DispatchReport:
    """What one worker invocation did to a job."""

    job_id: str
    state: JobState
    attempt: int
    delivered: tuple[str, ...]
    failed: tuple[str, ...]
    outcomes: dict[str, typ.Any]


@dc.dataclass(frozen=True, slots=True)
class DispatchWorkerDependencies:
    """Collaborators required by :class:`DispatchWorker`."""

    queue: ForwardingQueue
    events: EventStore
    destinations: DestinationRegistry
    connectors: ConnectorRegistry
    retry: RetryPolicy
    notifier: JobNotifier | None = None
    event_logger: ForwardingEventLogger = dc.field(
        default_factory=ForwardingEventLogger
    )


def _default_worker_id() -> str:
    return f"{socket.gethostname()}:{uuid.uuid4().hex[:8]}"


class DispatchWorker:
    """Deliver forwarding jobs to their destinations."""

    def __init__(
        self,
        dependencies: DispatchWorkerDependencies,
        *,
        worker_id: str | None = None,
    ) -> None:
        """Store collaborators and the identity used when claiming jobs."""
        self._deps = dependencies
        self._worker_id = worker_id or _default_worker_id()

    @property
    def worker_id(self) -> str:
        """Identity recorded on claimed jobs."""
        return self._worker_id

    async def process(self, job_id: str) -> DispatchReport | None:
        """Run one delivery attempt for ``job_id``.

        Returns
        -------
        DispatchReport | None
            The resulting transition, or ``None`` when the job could not
            be claimed (absent, finished, not yet due, or leased elsewhere)
            or its lease was taken over before the result was written.

        """
        deps = self._deps
        job = await deps.queue.claim(job_id, self._worker_id)
        if job is None:
            return None
        deps.event_logger.log_job_claimed(
            job_id=job.id, event_id=job.event_id, attempt=job.attempts
        )

        if job.attempts > deps.retry.max_attempts:
            return await self._exhaust(
                job,
                set(job.delivered),
                job.outcomes,
                (),
                "attempt budget used before the previous lease expired",
            )

        event = await deps.events.find_by_id(job.event_id)
        if event is None:
            return await self._exhaust(
                job, set(job.delivered), job.outcomes, (), "event not found"
            )

        canonical = CanonicalEvent.from_record(event)
        destinations = await deps.destinations.resolve_for_dispatch(
            job.intended, event.name
        )
        pending = [d for d in destinations if d.id not in job.delivered]
        results = await asyncio.gather(
            *(self._deliver(destination, canonical) for destination in pending)
        )

        delivered = set(job.delivered)
        outcomes = dict(job.outcomes)
        failed: list[str] = []
        for destination, outcome in zip(pending, results, strict=True):
            outcomes[destination.id] = outcome.summary() | {
                "type": str(destination.type),
                "attempt": job.attempts,
            }
            if outcome.ok:
                delivered.add(destination.id)
                deps.event_logger.log_destination_delivered(
                    job_id=job.id,
                    destination_id=destination.id,
                    destination_type=str(destination.type),
                    sent=outcome.sent_count,
                    failed=outcome.failed_count,
                    skipped=outcome.skipped,
                )
            else:
                failed.append(destination.id)
                deps.event_logger.log_destination_failed(
                    job_id=job.id,
                    destination_id=destination.id,
                    destination_type=str(destination.type),
                    error=outcome.error,
                )

        if not failed:
            if not await deps.queue.mark_completed(
                job.id, self._worker_id, delivered=delivered, outcomes=outcomes
            ):
                return self._lease_lost(job)
            deps.event_logger.log_job_completed(
                job_id=job.id, attempt=job.attempts, delivered=len(delivered)
            )
            return self._report(job, JobState.COMPLETED, delivered, (), outcomes)

        error = _summarise_failures(failed, outcomes)
        if deps.retry.exhausted(job.attempts):
            return await self._exhaust(job, delivered, outcomes, failed, error)

        delay = deps.retry.delay_for(job.attempts)
        if not await deps.queue.schedule_retry(
            job.id,
            self._worker_id,
            delay=delay,
            delivered=delivered,
            outcomes=outcomes,
            error=error,
        ):
            return self._lease_lost(job)
        deps.event_logger.log_retry_scheduled(
            job_id=job.id, attempt=job.attempts, delay=delay, pending=len(failed)
        )
        if deps.notifier is not None:
            deps.notifier.notify(job.id, delay=delay)
        return self._report(job, JobState.RETRY_SCHEDULED, delivered, failed, outcomes)

    async def _deliver(
        self, destination: ResolvedDestination, event: CanonicalEvent
    ) -> SendOutcome:
        if destination.config is None:
            return SendOutcome.failure(
                f"destination config unavailable: {destination.config_error}"
            )
        decision = apply_consent(destination.type, event)
        if decision.event is None:
            return SendOutcome.skip(decision.reason or "consent denied")
        connector = self._deps.connectors.get(destination.type)
        if connector is None:
            return SendOutcome.failure(f"no connector for {destination.type}")
        return await connector.send(destination.config, decision.event)

    async def _exhaust(
        self,
        job: ClaimedJob,
        delivered: set[str],
        outcomes: dict[str, typ.Any],
        failed: typ.Sequence[str],
        error: str,
    ) -> DispatchReport | None:
        if not await self._deps.queue.mark_exhausted(
            job.id,
            self._worker_id,
            delivered=delivered,
            outcomes=outcomes,
            error=error,
        ):
            return self._lease_lost(job)
        self._deps.event_logger.log_job_exhausted(
            job_id=job.id, attempt=job.attempts, error=error
        )
        return self._report(job, JobState.FAILED_EXHAUSTED, delivered, failed, outcomes)

    def _lease_lost(self, job: ClaimedJob) -> None:
        self._deps.event_logger.log_lease_lost(
            job_id=job.id, worker_id=self._worker_id, attempt=job.attempts
        )

    @staticmethod
    def _report(
        job: ClaimedJob,
        state: JobState,
        delivered: set[str],
        failed: typ.Sequence[str],
        outcomes: dict[str, typ.Any],
    ) -> DispatchReport:
        return DispatchReport(
            job_id=job.id,
            state=state,
            attempt=job.attempts,
            delivered=tuple(sorted(delivered)),
            failed=tuple(failed),
            outcomes=outcomes,
        )


def _summarise_failures(
    failed: typ.Sequence[str], outcomes: dict[str, typ.Any]
) -> str:
    parts = [
        f"{outcome.get('type')}:{outcome.get('error')}"
        for outcome in (outcomes[destination_id] for destination_id in failed)
    ]
    return "; ".join(parts)


async def notify_due_jobs(
    queue: ForwardingQueue, notifier: JobNotifier, *, limit: int = 100
) -> list[str]:
    """Re-notify every claimable job so none waits on a lost message.

    Covers retries whose delayed notification was dropped and in-flight
    jobs whose worker died before the lease expired.
    """
    job_ids = await queue.list_due(limit)
    for job_id in job_ids:
        notifier.notify(job_id)
    return job_ids
