"""Unit tests for the public intake endpoints.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_ingest.py

"""

from __future__ import annotations

import typing as typ

import falcon
import msgspec
import pytest

from beacon.admission import CounterStoreError
from beacon.webhooks import SIGNATURE_HEADER, build_webhook_headers
from tests.helpers.builders import (
    GRANTED,
    WEBHOOK_SECRET,
    RecordingNotifier,
    SaturatedCounterStore,
)

if typ.TYPE_CHECKING:
    import falcon.testing

    from beacon.admission import WindowState


def _signed(
    body: dict[str, typ.Any], secret: str = WEBHOOK_SECRET
) -> dict[str, typ.Any]:
    """Return ``simulate_post`` keyword arguments for a signed body."""
    raw = msgspec.json.encode(body)
    return {"body": raw, "headers": build_webhook_headers(raw, secret)}


class _UnavailableStore:
    """Counter store whose backend is down."""

    async def hit(
        self, key: str, *, now_ms: int, window_ms: int, limit: int
    ) -> WindowState:
        raise CounterStoreError("connection refused")


class TestTrack:
    """``POST /track``."""

    @pytest.mark.asyncio
    async def test_accepts_event(
        self,
        conductor: falcon.testing.ASGIConductor,
        api_notifier: RecordingNotifier,
    ) -> None:
        """A valid event is stored, routed and handed to a worker."""
        result = await conductor.simulate_post(
            "/track",
            json={"name": "lead_submitted", "consent": GRANTED, "sessionId": "s-1"},
        )

        assert result.status == falcon.HTTP_200, result.text
        assert result.json["ok"] is True
        assert result.json["intended"][0] == "POSTHOG"
        assert len(result.json["intended"]) == 9
        assert result.headers["X-RateLimit-Limit"] == "100"
        assert result.headers["X-RateLimit-Remaining"] == "99"
        assert len(api_notifier.calls) == 1

    @pytest.mark.asyncio
    async def test_duplicate_external_id_is_deduped(
        self, conductor: falcon.testing.ASGIConductor
    ) -> None:
        """Resubmitting the same external event id returns the first id."""
        body = {"name": "lead_submitted", "externalEventId": "order-1"}
        first = await conductor.simulate_post("/track", json=body)

        second = await conductor.simulate_post("/track", json=body)

        assert second.status == falcon.HTTP_200
        assert second.json == {"ok": True, "id": first.json["id"], "deduped": True}

    @pytest.mark.asyncio
    async def test_invalid_json(self, conductor: falcon.testing.ASGIConductor) -> None:
        """A malformed body is a 400 with a fixed message."""
        result = await conductor.simulate_post(
            "/track",
            body=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert result.status == falcon.HTTP_400
        assert result.json == {"ok": False, "error": "Invalid JSON"}

    @pytest.mark.asyncio
    async def test_schema_violation(
        self, conductor: falcon.testing.ASGIConductor
    ) -> None:
        """A body missing the event name is rejected."""
        result = await conductor.simulate_post("/track", json={"source": "web"})

        assert result.status == falcon.HTTP_400
        assert result.json["ok"] is False
        assert "name" in result.json["error"]

    @pytest.mark.asyncio
    async def test_overlong_name_is_rejected_before_storage(
        self, conductor: falcon.testing.ASGIConductor
    ) -> None:
        """A name wider than its column is a 400, not a database error."""
        result = await conductor.simulate_post("/track", json={"name": "x" * 200})

        assert result.status == falcon.HTTP_400
        assert result.json["ok"] is False
        assert "name" in result.json["error"]


class TestConversions:
    """``POST /conversions`` with a configured webhook secret."""

    @pytest.mark.asyncio
    async def test_signed_conversion_is_recorded(
        self, conductor: falcon.testing.ASGIConductor
    ) -> None:
        """A correctly signed conversion is stored with its synthetic event."""
        result = await conductor.simulate_post(
            "/conversions",
            **_signed({"status": "job_completed", "valueCents": 12500, "jobId": "j-1"}),
        )

        assert result.status == falcon.HTTP_200, result.text
        assert result.json["conversionId"]
        assert result.json["eventId"]
        assert "POSTHOG" not in result.json["intended"]

    @pytest.mark.asyncio
    async def test_unsigned_conversion_is_rejected(
        self, conductor: falcon.testing.ASGIConductor
    ) -> None:
        """Without a signature header the call is unauthorized."""
        result = await conductor.simulate_post(
            "/conversions", json={"status": "lead_submitted"}
        )

        assert result.status == falcon.HTTP_401
        assert result.json == {"ok": False, "error": "Missing signature"}

    @pytest.mark.asyncio
    async def test_wrong_secret_is_rejected(
        self, conductor: falcon.testing.ASGIConductor
    ) -> None:
        """A signature made with another secret does not verify."""
        result = await conductor.simulate_post(
            "/conversions", **_signed({"status": "lead_submitted"}, "other-secret")
        )

        assert result.status == falcon.HTTP_401
        assert result.json["error"] == "Signature mismatch"

    @pytest.mark.asyncio
    async def test_malformed_signature_is_rejected(
        self, conductor: falcon.testing.ASGIConductor
    ) -> None:
        """Non-hex signatures are reported as a format problem."""
        kwargs = _signed({"status": "lead_submitted"})
        kwargs["headers"][SIGNATURE_HEADER] = "sha256=not-hex"

        result = await conductor.simulate_post("/conversions", **kwargs)

        assert result.status == falcon.HTTP_401
        assert result.json["error"] == "Invalid signature format"

    @pytest.mark.asyncio
    async def test_duplicate_conversion(
        self, conductor: falcon.testing.ASGIConductor
    ) -> None:
        """A resubmitted conversion is acknowledged as deduplicated."""
        body = {"status": "booking_confirmed", "externalEventId": "booking-9"}
        first = await conductor.simulate_post("/conversions", **_signed(body))

        second = await conductor.simulate_post("/conversions", **_signed(body))

        assert second.json == {
            "ok": True,
            "eventId": first.json["eventId"],
            "deduped": True,
        }


class TestAdmission:
    """Rate limiting on the intake surface."""

    @pytest.fixture
    def counter_store(self) -> SaturatedCounterStore:
        """Report every window as full."""
        return SaturatedCounterStore()

    @pytest.mark.asyncio
    async def test_rejected_with_retry_after(
        self,
        conductor: falcon.testing.ASGIConductor,
        api_notifier: RecordingNotifier,
    ) -> None:
        """Callers over the limit get 429 and nothing is stored."""
        result = await conductor.simulate_post("/track", json={"name": "page_view"})

        assert result.status == falcon.HTTP_429
        assert result.json == {
            "ok": False,
            "error": "Rate limit exceeded",
            "retryAfter": 60,
        }
        assert result.headers["Retry-After"] == "60"
        assert result.headers["X-RateLimit-Remaining"] == "0"
        assert api_notifier.calls == []


class TestAdmissionFailOpen:
    """Intake when the counter store is down."""

    @pytest.fixture
    def counter_store(self) -> _UnavailableStore:
        """Return a store that always errors."""
        return _UnavailableStore()

    @pytest.mark.asyncio
    async def test_events_are_admitted(
        self, conductor: falcon.testing.ASGIConductor
    ) -> None:
        """An unavailable limiter never blocks intake."""
        result = await conductor.simulate_post("/track", json={"name": "page_view"})

        assert result.status == falcon.HTTP_200, result.text
