"""Accept tracking events and conversions, then hand them to forwarding.

Each accepted event is stored together with its forwarding job (and, for
conversions, the conversion row) in one transaction. The worker is only
notified after that transaction commits, so a job is never processed for
an event that was rolled back.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from beacon.events.models import EventEnvelope
from beacon.events.storage import Conversion, new_id
from beacon.logging import get_logger, log_exception, log_info
from beacon.routing import routes_for

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from beacon.events import ConversionInput, Event, EventStore, TrackEventInput
    from beacon.forwarding.queue import ForwardingQueue
    from beacon.forwarding.storage import ForwardingJob
    from beacon.forwarding.worker import JobNotifier
    from beacon.routing.types import DestinationType

__all__ = ["ConversionReceipt", "IngestionService", "TrackReceipt"]

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class TrackReceipt:
    """Outcome of accepting one tracking event."""

    event_id: str
    intended: tuple[DestinationType, ...]
    deduped: bool = False

    def as_media(self) -> dict[str, typ.Any]:
        """Return the response body for ``POST /track``."""
        if self.deduped:
            return {"ok": True, "id": self.event_id, "deduped": True}
        return {
            "ok": True,
            "id": self.event_id,
            "intended": [str(value) for value in self.intended],
        }


@dc.dataclass(frozen=True, slots=True)
class ConversionReceipt:
    """Outcome of recording one conversion."""

    event_id: str
    conversion_id: str | None
    intended: tuple[DestinationType, ...]
    deduped: bool = False

    def as_media(self) -> dict[str, typ.Any]:
        """Return the response body for ``POST /conversions``."""
        if self.deduped:
            return {"ok": True, "eventId": self.event_id, "deduped": True}
        return {
            "ok": True,
            "conversionId": self.conversion_id,
            "eventId": self.event_id,
            "intended": [str(value) for value in self.intended],
        }


class IngestionService:
    """Store events idempotently and enqueue their forwarding work."""

    def __init__(
        self,
        events: EventStore,
        queue: ForwardingQueue,
        *,
        notifier: JobNotifier | None = None,
    ) -> None:
        """Store collaborators; ``notifier`` may be omitted when a sweeper runs."""
        self._events = events
        self._queue = queue
        self._notifier = notifier

    async def track(self, body: TrackEventInput) -> TrackReceipt:
        """Accept a client tracking event."""
        envelope = EventEnvelope.from_track(body)
        intended = routes_for(envelope.name)
        jobs: list[ForwardingJob] = []

        def companions(event: Event) -> cabc.Iterable[object]:
            return self._job_for(event, intended, jobs)

        result = await self._events.insert_if_absent(envelope, companions=companions)
        if not result.was_new:
            return TrackReceipt(event_id=result.record.id, intended=(), deduped=True)

        self._notify(jobs)
        return TrackReceipt(event_id=result.record.id, intended=intended)

    async def record_conversion(self, body: ConversionInput) -> ConversionReceipt:
        """Record a server-side conversion and its synthetic event.

        Duplicate submissions, identified by ``external_event_id``,
        return the original event without a new conversion row.
        """
        conversion_id = new_id()
        envelope = EventEnvelope.from_conversion(body, conversion_id)
        intended = routes_for(envelope.name)
        jobs: list[ForwardingJob] = []

        def companions(event: Event) -> cabc.Iterable[object]:
            conversion = Conversion(
                id=conversion_id,
                status=body.status,
                value_cents=body.value_cents,
                currency=body.currency,
                lead_id=body.lead_id,
                job_id=body.job_id,
                invoice_id=body.invoice_id,
                event_id=event.id,
                payload=dict(event.payload),
            )
            return [conversion, *self._job_for(event, intended, jobs)]

        result = await self._events.insert_if_absent(envelope, companions=companions)
        if not result.was_new:
            return ConversionReceipt(
                event_id=result.record.id,
                conversion_id=None,
                intended=(),
                deduped=True,
            )

        log_info(
            logger,
            "Conversion %s recorded as event %s (%s)",
            conversion_id,
            result.record.id,
            body.status,
        )
        self._notify(jobs)
        return ConversionReceipt(
            event_id=result.record.id,
            conversion_id=conversion_id,
            intended=intended,
        )

    def _job_for(
        self,
        event: Event,
        intended: tuple[DestinationType, ...],
        sink: list[ForwardingJob],
    ) -> list[ForwardingJob]:
        if not intended:
            return []
        job = self._queue.build_job(event.id, intended)
        sink.append(job)
        return [job]

    def _notify(self, jobs: cabc.Sequence[ForwardingJob]) -> None:
        if self._notifier is None:
            return
        for job in jobs:
            try:
                self._notifier.notify(job.id)
            except Exception as exc:  # noqa: BLE001 - the sweeper re-notifies
                log_exception(
                    logger, f"Could not notify worker for job {job.id}", exc
                )
