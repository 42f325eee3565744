"""Build :class:`~beacon.api.app.AppDependencies` from configuration.

Usage
-----
Build dependencies for the runtime::

    from beacon.api.factory import build_app_dependencies

    deps = build_app_dependencies(session_factory, BeaconConfig.from_env())

"""

from __future__ import annotations

import typing as typ

from beacon.admission import AdmissionLimiter, InMemoryCounterStore, RedisCounterStore
from beacon.api.app import AppDependencies
from beacon.destinations import DestinationRegistry
from beacon.events import EventStore
from beacon.forwarding import create_forwarding_queue
from beacon.ingestion import IngestionService
from beacon.vault import CredentialVault

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from beacon.admission import CounterStore
    from beacon.config import BeaconConfig
    from beacon.forwarding import ForwardingConfig, JobNotifier

__all__ = ["build_app_dependencies", "build_counter_store"]


def build_counter_store(config: BeaconConfig) -> CounterStore:
    """Return the Redis counter store when configured, else an in-process one."""
    if config.redis_url is not None:
        return RedisCounterStore.from_url(config.redis_url)
    return InMemoryCounterStore()


def build_app_dependencies(  # noqa: PLR0913 - optional overrides for tests
    session_factory: async_sessionmaker[AsyncSession],
    config: BeaconConfig,
    *,
    notifier: JobNotifier | None = None,
    counter_store: CounterStore | None = None,
    vault: CredentialVault | None = None,
    forwarding_config: ForwardingConfig | None = None,
) -> AppDependencies:
    """Assemble the services used by the HTTP surface.

    Parameters
    ----------
    session_factory
        Async session factory for database access.
    config
        Service configuration.
    notifier
        Wakes a dispatch worker once an event's job has committed.
    counter_store
        Overrides the store chosen by :func:`build_counter_store`.
    vault
        Overrides the vault keyed by ``BEACON_ENCRYPTION_KEY``.
    forwarding_config
        Overrides ``BEACON_FORWARDING_*`` settings for new jobs.

    Returns
    -------
    AppDependencies
        Dependencies ready for :func:`beacon.api.app.create_app`.

    """
    queue = create_forwarding_queue(session_factory, forwarding_config)
    ingestion = IngestionService(EventStore(session_factory), queue, notifier=notifier)
    destinations = DestinationRegistry(
        session_factory, vault or CredentialVault.from_env()
    )
    limiter = AdmissionLimiter(
        counter_store or build_counter_store(config),
        timeout_s=config.limiter_timeout_s,
    )
    return AppDependencies(
        session_factory=session_factory,
        ingestion=ingestion,
        destinations=destinations,
        limiter=limiter,
        config=config,
    )
