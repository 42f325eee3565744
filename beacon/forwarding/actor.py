"""Dramatiq actors that run the dispatch worker.

Usage
-----
Dispatch a job immediately:

>>> dispatch_forwarding_job.send("postgresql+asyncpg://...", job_id)

Re-notify every job that is due, for example from a periodic scheduler:

>>> sweep_due_jobs.send("postgresql+asyncpg://...")

"""

from __future__ import annotations

import asyncio
import threading
import typing as typ

import dramatiq
import httpx
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from beacon.forwarding._broker import ensure_broker_configured
from beacon.forwarding.config import ForwardingConfig
from beacon.forwarding.factory import create_dispatch_worker, create_forwarding_queue
from beacon.forwarding.worker import notify_due_jobs

if typ.TYPE_CHECKING:
    import datetime as dt

type SessionFactory = async_sessionmaker[AsyncSession]

# Each actor call runs its own event loop, so pooled connections are not
# shared between calls.
_ENGINE_CACHE: dict[str, AsyncEngine] = {}
_SESSION_FACTORY_CACHE: dict[str, SessionFactory] = {}
_CACHE_LOCK = threading.Lock()

ensure_broker_configured()


def _get_or_create_session_factory(database_url: str) -> SessionFactory:
    """Get or create an async session factory for the given database URL.

    Thread-safe: uses a lock to prevent race conditions in Dramatiq workers.
    """
    with _CACHE_LOCK:
        if database_url not in _SESSION_FACTORY_CACHE:
            engine = _ENGINE_CACHE.get(database_url)
            if engine is None:
                engine = create_async_engine(database_url, poolclass=NullPool)
                _ENGINE_CACHE[database_url] = engine
            _SESSION_FACTORY_CACHE[database_url] = async_sessionmaker(
                engine, expire_on_commit=False
            )
        return _SESSION_FACTORY_CACHE[database_url]


class DramatiqJobNotifier:
    """Enqueue :func:`dispatch_forwarding_job` messages for a database."""

    def __init__(self, database_url: str) -> None:
        """Store the database URL passed to the actor."""
        self._database_url = database_url

    def notify(self, job_id: str, *, delay: dt.timedelta | None = None) -> None:
        """Send a dispatch message, delayed when ``delay`` is positive."""
        if delay is None or delay.total_seconds() <= 0:
            dispatch_forwarding_job.send(self._database_url, job_id)
            return
        dispatch_forwarding_job.send_with_options(
            args=(self._database_url, job_id),
            delay=int(delay.total_seconds() * 1000),
        )


def _run_actor_async[T](
    database_url: str,
    async_fn: typ.Callable[[SessionFactory, ForwardingConfig], typ.Awaitable[T]],
) -> T:
    """Execute common async scaffolding for Dramatiq actors."""
    ensure_broker_configured()
    session_factory = _get_or_create_session_factory(database_url)
    config = ForwardingConfig.from_env()
    return asyncio.run(async_fn(session_factory, config))


@dramatiq.actor(max_retries=0)
def dispatch_forwarding_job(database_url: str, job_id: str) -> str | None:
    """Run one delivery attempt for ``job_id``.

    Dramatiq's own retries are disabled: the forwarding queue owns the
    attempt budget and backoff.

    Returns
    -------
    str | None
        The job state after this attempt, or None if it was not claimed.

    """

    async def execute(
        session_factory: SessionFactory, config: ForwardingConfig
    ) -> str | None:
        async with httpx.AsyncClient(timeout=config.connector_timeout_s) as client:
            worker = create_dispatch_worker(
                session_factory,
                client,
                config=config,
                notifier=DramatiqJobNotifier(database_url),
            )
            report = await worker.process(job_id)
        return str(report.state) if report else None

    return _run_actor_async(database_url, execute)


@dramatiq.actor(max_retries=0)
def sweep_due_jobs(database_url: str) -> list[str]:
    """Re-notify claimable jobs, returning the ids that were sent."""

    async def execute(
        session_factory: SessionFactory, config: ForwardingConfig
    ) -> list[str]:
        queue = create_forwarding_queue(session_factory, config)
        return await notify_due_jobs(
            queue, DramatiqJobNotifier(database_url), limit=config.sweep_batch
        )

    return _run_actor_async(database_url, execute)
