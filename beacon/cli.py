"""Operator commands for the forwarding queue.

Usage:
    beacon init-db              # Create missing tables
    beacon sweep                # Re-enqueue jobs that are due
    beacon failed               # List exhausted jobs
    beacon requeue JOB_ID       # Give an exhausted job a fresh budget

Every command reads ``BEACON_DATABASE_URL`` unless ``--database-url`` is
passed.
"""

from __future__ import annotations

import asyncio
import sys
import typing as typ

from cyclopts import App, Parameter
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from beacon.events import init_storage
from beacon.forwarding import ForwardingConfig, create_forwarding_queue, notify_due_jobs

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from beacon.forwarding import ForwardingJob, ForwardingQueue

app = App(
    name="beacon",
    help="Operate the Beacon forwarding queue",
    version="0.1.0",
)

DatabaseUrl = typ.Annotated[str, Parameter(env_var="BEACON_DATABASE_URL")]


def _session_factory(database_url: str) -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine(database_url)
    return async_sessionmaker(engine, expire_on_commit=False)


def _queue(database_url: str) -> ForwardingQueue:
    return create_forwarding_queue(
        _session_factory(database_url), ForwardingConfig.from_env()
    )


def _format_job(job: ForwardingJob) -> str:
    return (
        f"{job.id}  event={job.event_id}  attempts={job.attempts}/"
        f"{job.max_attempts}  updated={job.updated_at.isoformat()}  "
        f"error={job.last_error or '-'}"
    )


@app.command(name="init-db")
def init_db(*, database_url: DatabaseUrl) -> int:
    """Create every Beacon table that does not exist yet.

    Args:
        database_url: SQLAlchemy async database URL.

    Returns:
        Exit code (0 for success).

    """
    engine = create_async_engine(database_url)
    asyncio.run(init_storage(engine))
    print("Storage initialised.")
    return 0


@app.command
def sweep(*, database_url: DatabaseUrl, limit: int | None = None) -> int:
    """Send a dispatch message for every job that is due or whose lease expired.

    Args:
        database_url: SQLAlchemy async database URL.
        limit: Maximum jobs to notify (defaults to BEACON_FORWARDING_SWEEP_BATCH).

    Returns:
        Exit code (0 for success).

    """
    from beacon.forwarding.actor import DramatiqJobNotifier

    batch = limit or ForwardingConfig.from_env().sweep_batch
    job_ids = asyncio.run(
        notify_due_jobs(
            _queue(database_url), DramatiqJobNotifier(database_url), limit=batch
        )
    )
    print(f"Enqueued {len(job_ids)} job(s).")
    return 0


@app.command
def failed(*, database_url: DatabaseUrl, limit: int = 50) -> int:
    """List jobs that exhausted their attempts.

    Args:
        database_url: SQLAlchemy async database URL.
        limit: Maximum jobs to list.

    Returns:
        Exit code (0 for success).

    """
    jobs = asyncio.run(_queue(database_url).list_failed(limit))
    if not jobs:
        print("No exhausted jobs.")
        return 0
    for job in jobs:
        print(_format_job(job))
    return 0


@app.command
def requeue(job_id: str, *, database_url: DatabaseUrl) -> int:
    """Reset an exhausted job to queued with a fresh attempt budget.

    Args:
        job_id: Identifier of the exhausted job.
        database_url: SQLAlchemy async database URL.

    Returns:
        Exit code (0 for success, 1 when the job is missing or not exhausted).

    """
    if not asyncio.run(_queue(database_url).requeue(job_id)):
        print(f"Job {job_id} is not an exhausted job.", file=sys.stderr)
        return 1
    print(f"Job {job_id} requeued; run 'beacon sweep' or wait for the sweeper.")
    return 0


def main() -> int:
    """Entry point for the CLI."""
    return app()


if __name__ == "__main__":
    sys.exit(main())
