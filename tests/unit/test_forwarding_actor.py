"""Unit tests for the forwarding Dramatiq actors and broker selection."""

from __future__ import annotations

import datetime as dt
import typing as typ

import dramatiq
import pytest
from dramatiq import Message
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from beacon.events import EventStore, init_storage
from beacon.forwarding import _broker
from beacon.forwarding.actor import (
    DramatiqJobNotifier,
    dispatch_forwarding_job,
    sweep_due_jobs,
)
from beacon.forwarding.queue import ForwardingQueue
from tests.helpers import run_async
from tests.helpers.builders import TEST_ENCRYPTION_KEY, enqueue_event

if typ.TYPE_CHECKING:
    from pathlib import Path

    from dramatiq.brokers.stub import StubBroker

DATABASE_URL = "sqlite+aiosqlite:///unused.db"


def _seed_job(database_url: str, name: str = "page_view") -> str:
    """Create tables and one queued job in a fresh database."""

    async def seed() -> str:
        engine = create_async_engine(database_url, poolclass=NullPool)
        try:
            await init_storage(engine)
            factory = async_sessionmaker(engine, expire_on_commit=False)
            return await enqueue_event(
                EventStore(factory), ForwardingQueue(factory), name
            )
        finally:
            await engine.dispose()

    return run_async(seed)


class TestDramatiqJobNotifier:
    """Tests for enqueuing dispatch messages."""

    def test_notify_enqueues_immediately(self, stub_broker: StubBroker) -> None:
        """Without a delay the message lands on the actor's queue."""
        DramatiqJobNotifier(DATABASE_URL).notify("job-1")

        queue = stub_broker.queues[dispatch_forwarding_job.queue_name]
        assert queue.qsize() == 1, "one dispatch message should be queued"
        decoded = Message.decode(queue.get_nowait())
        assert list(decoded.args) == [DATABASE_URL, "job-1"], (
            "message should carry the database URL and job id"
        )

    def test_notify_with_delay_uses_delay_queue(self, stub_broker: StubBroker) -> None:
        """Retries are held on the delay queue until their ETA."""
        DramatiqJobNotifier(DATABASE_URL).notify(
            "job-1", delay=dt.timedelta(seconds=4)
        )

        delayed = stub_broker.queues[f"{dispatch_forwarding_job.queue_name}.DQ"]
        assert delayed.qsize() == 1, "delayed message should wait on the DQ"
        decoded = Message.decode(delayed.get_nowait())
        assert "eta" in decoded.options, "delayed message should carry an ETA"

    def test_zero_delay_is_immediate(self, stub_broker: StubBroker) -> None:
        """A non-positive delay is treated as no delay."""
        DramatiqJobNotifier(DATABASE_URL).notify("job-1", delay=dt.timedelta(0))

        queue = stub_broker.queues[dispatch_forwarding_job.queue_name]
        assert queue.qsize() == 1


class TestActors:
    """Actor bodies executed in-process against SQLite."""

    def test_dispatch_completes_job_without_destinations(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        stub_broker: StubBroker,
    ) -> None:
        """The actor runs the worker and reports the resulting state."""
        monkeypatch.setenv("BEACON_ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
        database_url = f"sqlite+aiosqlite:///{tmp_path / 'actor.db'}"
        job_id = _seed_job(database_url)

        state = dispatch_forwarding_job.fn(database_url, job_id)

        assert state == "completed", f"Expected completed, got {state}"
        assert dispatch_forwarding_job.fn(database_url, job_id) is None, (
            "a discarded job should not be claimable again"
        )

    def test_sweep_notifies_due_jobs(
        self, tmp_path: Path, stub_broker: StubBroker
    ) -> None:
        """Sweeping re-enqueues every claimable job."""
        database_url = f"sqlite+aiosqlite:///{tmp_path / 'sweep.db'}"
        job_id = _seed_job(database_url, "lead_submitted")

        notified = sweep_due_jobs.fn(database_url)

        assert notified == [job_id]
        queue = stub_broker.queues[dispatch_forwarding_job.queue_name]
        assert list(Message.decode(queue.get_nowait()).args) == [database_url, job_id]


class TestBrokerSelection:
    """Tests for ``ensure_broker_configured``."""

    @pytest.fixture(autouse=True)
    def reset_flag(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Force the next call to choose a broker again."""
        monkeypatch.setattr(_broker, "_broker_configured", False)

    def test_existing_stub_is_kept_under_tests(self, stub_broker: StubBroker) -> None:
        """Actors stay bound to the stub broker installed by the test suite."""
        _broker.ensure_broker_configured()

        assert dramatiq.get_broker() is stub_broker

    def test_redis_is_used_outside_tests(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A configured Redis URL selects the Redis broker."""
        chosen: list[object] = []
        monkeypatch.setattr(_broker, "_should_use_stub_broker", lambda: False)
        monkeypatch.setattr(_broker, "RedisBroker", lambda url: ("redis", url))
        monkeypatch.setattr(dramatiq, "set_broker", chosen.append)
        monkeypatch.setenv(_broker.REDIS_URL_ENV, "redis://cache:6379/0")

        _broker.ensure_broker_configured()

        assert chosen == [("redis", "redis://cache:6379/0")]

    def test_missing_broker_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without Redis or stub permission there is no broker to use."""
        monkeypatch.setattr(_broker, "_should_use_stub_broker", lambda: False)
        monkeypatch.setattr(_broker, "_current_broker", lambda: None)
        monkeypatch.delenv(_broker.REDIS_URL_ENV, raising=False)

        with pytest.raises(RuntimeError, match=_broker.ALLOW_STUB_ENV):
            _broker.ensure_broker_configured()
