"""Unit tests for forwarding observability logging."""

from __future__ import annotations

import datetime as dt

import pytest

from beacon.forwarding import ForwardingEventLogger, ForwardingEventType
from tests.helpers.femtologging_capture import capture_femto_logs

LOGGER_NAME = "beacon.forwarding.observability"


class TestForwardingEventLogger:
    """Tests for ``ForwardingEventLogger`` structured log events."""

    @pytest.fixture
    def logger_instance(self) -> ForwardingEventLogger:
        """Return a fresh forwarding event logger."""
        return ForwardingEventLogger()

    def test_log_job_claimed_emits_info(
        self, logger_instance: ForwardingEventLogger
    ) -> None:
        """Claims are logged at INFO with job and event ids."""
        with capture_femto_logs(LOGGER_NAME) as capture:
            logger_instance.log_job_claimed(job_id="job-1", event_id="evt-1", attempt=2)
            capture.wait_for_count(1)
            record = capture.records[0]
            assert record.level == "INFO"
            assert ForwardingEventType.JOB_CLAIMED in record.message
            assert "job_id=job-1" in record.message
            assert "event_id=evt-1" in record.message
            assert "attempt=2" in record.message

    def test_log_destination_delivered_reports_partial_counts(
        self, logger_instance: ForwardingEventLogger
    ) -> None:
        """Partial acceptance is visible through the failed count."""
        with capture_femto_logs(LOGGER_NAME) as capture:
            logger_instance.log_destination_delivered(
                job_id="job-1",
                destination_id="dest-1",
                destination_type="META_CAPI",
                sent=1,
                failed=1,
                skipped=False,
            )
            capture.wait_for_count(1)
            message = capture.records[0].message
            assert ForwardingEventType.DESTINATION_DELIVERED in message
            assert "type=META_CAPI" in message
            assert "sent=1 failed=1" in message

    def test_log_destination_failed_emits_warning(
        self, logger_instance: ForwardingEventLogger
    ) -> None:
        """Retryable destination failures are warnings."""
        with capture_femto_logs(LOGGER_NAME) as capture:
            logger_instance.log_destination_failed(
                job_id="job-1",
                destination_id="dest-1",
                destination_type="GA4",
                error="HTTP 503",
            )
            capture.wait_for_count(1)
            record = capture.records[0]
            assert record.level == "WARN"
            assert ForwardingEventType.DESTINATION_FAILED in record.message
            assert "error=HTTP 503" in record.message

    def test_log_retry_scheduled_includes_delay(
        self, logger_instance: ForwardingEventLogger
    ) -> None:
        """Retry events carry the backoff in seconds."""
        with capture_femto_logs(LOGGER_NAME) as capture:
            logger_instance.log_retry_scheduled(
                job_id="job-1", attempt=3, delay=dt.timedelta(seconds=8), pending=2
            )
            capture.wait_for_count(1)
            message = capture.records[0].message
            assert ForwardingEventType.RETRY_SCHEDULED in message
            assert "delay_s=8.0" in message
            assert "pending=2" in message

    def test_log_job_completed_emits_info(
        self, logger_instance: ForwardingEventLogger
    ) -> None:
        """Completion is logged at INFO with the delivered count."""
        with capture_femto_logs(LOGGER_NAME) as capture:
            logger_instance.log_job_completed(job_id="job-1", attempt=1, delivered=3)
            capture.wait_for_count(1)
            record = capture.records[0]
            assert record.level == "INFO"
            assert "delivered=3" in record.message

    def test_log_job_exhausted_emits_error(
        self, logger_instance: ForwardingEventLogger
    ) -> None:
        """Exhaustion is an error needing operator attention."""
        with capture_femto_logs(LOGGER_NAME) as capture:
            logger_instance.log_job_exhausted(
                job_id="job-1", attempt=5, error="GA4:HTTP 500"
            )
            capture.wait_for_count(1)
            record = capture.records[0]
            assert record.level == "ERROR"
            assert ForwardingEventType.JOB_EXHAUSTED in record.message
            assert "error=GA4:HTTP 500" in record.message
