"""Wiring helpers for the forwarding queue and dispatch worker."""

from __future__ import annotations

import typing as typ

from beacon.connectors import build_connectors
from beacon.destinations import DestinationRegistry
from beacon.events import EventStore
from beacon.forwarding.config import ForwardingConfig
from beacon.forwarding.queue import ForwardingQueue
from beacon.forwarding.worker import DispatchWorker, DispatchWorkerDependencies
from beacon.vault import CredentialVault

if typ.TYPE_CHECKING:
    import httpx
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from beacon.forwarding.worker import JobNotifier


def create_forwarding_queue(
    session_factory: async_sessionmaker[AsyncSession],
    config: ForwardingConfig | None = None,
) -> ForwardingQueue:
    """Build a queue honouring ``config`` (defaults to the environment)."""
    config = config or ForwardingConfig.from_env()
    return ForwardingQueue(
        session_factory,
        max_attempts=config.max_attempts,
        lease=config.lease,
        discard_completed=config.discard_completed,
    )


def create_dispatch_worker(
    session_factory: async_sessionmaker[AsyncSession],
    client: httpx.AsyncClient,
    *,
    config: ForwardingConfig | None = None,
    notifier: JobNotifier | None = None,
    vault: CredentialVault | None = None,
    worker_id: str | None = None,
) -> DispatchWorker:
    """Assemble a :class:`DispatchWorker` sharing ``client`` across connectors.

    Parameters
    ----------
    session_factory
        Factory for sessions against the shared database.
    client
        HTTP client used by every connector for this worker's lifetime.
    config
        Retry and lease settings; read from the environment when omitted.
    notifier
        Used to schedule the next attempt after a retryable failure.
    vault
        Vault for destination credentials; ``BEACON_ENCRYPTION_KEY`` when
        omitted.
    worker_id
        Identity recorded on claims.

    """
    config = config or ForwardingConfig.from_env()
    dependencies = DispatchWorkerDependencies(
        queue=create_forwarding_queue(session_factory, config),
        events=EventStore(session_factory),
        destinations=DestinationRegistry(
            session_factory, vault or CredentialVault.from_env()
        ),
        connectors=build_connectors(client),
        retry=config.retry_policy,
        notifier=notifier,
    )
    return DispatchWorker(dependencies, worker_id=worker_id)
