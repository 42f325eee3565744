"""Emit structured observability events for forwarding job execution.

Usage
-----
>>> event_logger = ForwardingEventLogger()
>>> event_logger.log_job_claimed(job_id="job-1", event_id="evt-1", attempt=1)

"""

from __future__ import annotations

import enum
import typing as typ

from beacon.logging import get_logger, log_error, log_info, log_warning

if typ.TYPE_CHECKING:
    import datetime as dt

logger = get_logger(__name__)


class ForwardingEventType(enum.StrEnum):
    """Structured log event types for forwarding jobs."""

    JOB_CLAIMED = "forwarding.job.claimed"
    DESTINATION_DELIVERED = "forwarding.destination.delivered"
    DESTINATION_FAILED = "forwarding.destination.failed"
    JOB_COMPLETED = "forwarding.job.completed"
    RETRY_SCHEDULED = "forwarding.job.retry_scheduled"
    JOB_EXHAUSTED = "forwarding.job.exhausted"
    LEASE_LOST = "forwarding.job.lease_lost"


class ForwardingEventLogger:
    """Emit structured forwarding events via femtologging."""

    def log_job_claimed(self, *, job_id: str, event_id: str, attempt: int) -> None:
        """Log that this worker now holds the lease on ``job_id``."""
        log_info(
            logger,
            "[%s] job_id=%s event_id=%s attempt=%s",
            ForwardingEventType.JOB_CLAIMED,
            job_id,
            event_id,
            attempt,
        )

    def log_destination_delivered(
        self,
        *,
        job_id: str,
        destination_id: str,
        destination_type: str,
        sent: int,
        failed: int,
        skipped: bool,
    ) -> None:
        """Log one destination that needs no further delivery.

        Partial provider acceptance is logged here with a non-zero
        ``failed`` count.
        """
        log_info(
            logger,
            "[%s] job_id=%s destination_id=%s type=%s sent=%s failed=%s skipped=%s",
            ForwardingEventType.DESTINATION_DELIVERED,
            job_id,
            destination_id,
            destination_type,
            sent,
            failed,
            skipped,
        )

    def log_destination_failed(
        self,
        *,
        job_id: str,
        destination_id: str,
        destination_type: str,
        error: str | None,
    ) -> None:
        """Log a destination whose delivery must be retried."""
        log_warning(
            logger,
            "[%s] job_id=%s destination_id=%s type=%s error=%s",
            ForwardingEventType.DESTINATION_FAILED,
            job_id,
            destination_id,
            destination_type,
            error,
        )

    def log_job_completed(self, *, job_id: str, attempt: int, delivered: int) -> None:
        """Log a job whose every destination has been delivered."""
        log_info(
            logger,
            "[%s] job_id=%s attempt=%s delivered=%s",
            ForwardingEventType.JOB_COMPLETED,
            job_id,
            attempt,
            delivered,
        )

    def log_retry_scheduled(
        self,
        *,
        job_id: str,
        attempt: int,
        delay: dt.timedelta,
        pending: int,
    ) -> None:
        """Log the backoff chosen after a failed attempt.

        Parameters
        ----------
        job_id
            Forwarding job identifier.
        attempt
            The attempt that just failed, starting at 1.
        delay
            Wait before the job becomes visible again.
        pending
            Destinations still awaiting delivery.

        """
        log_info(
            logger,
            "[%s] job_id=%s attempt=%s delay_s=%.1f pending=%s",
            ForwardingEventType.RETRY_SCHEDULED,
            job_id,
            attempt,
            delay.total_seconds(),
            pending,
        )

    def log_job_exhausted(self, *, job_id: str, attempt: int, error: str) -> None:
        """Log a job that will not be attempted again without operator action."""
        log_error(
            logger,
            "[%s] job_id=%s attempt=%s error=%s",
            ForwardingEventType.JOB_EXHAUSTED,
            job_id,
            attempt,
            error,
        )

    def log_lease_lost(self, *, job_id: str, worker_id: str, attempt: int) -> None:
        """Log an attempt whose result was dropped after its lease was taken over."""
        log_warning(
            logger,
            "[%s] job_id=%s worker_id=%s attempt=%s",
            ForwardingEventType.LEASE_LOST,
            job_id,
            worker_id,
            attempt,
        )
