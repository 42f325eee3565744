"""Unit-test fixtures for the Falcon application and its services."""

from __future__ import annotations

import typing as typ

import falcon.testing
import pytest
import pytest_asyncio

from beacon.admission import InMemoryCounterStore
from beacon.api.app import create_app
from beacon.api.factory import build_app_dependencies
from beacon.config import BeaconConfig
from beacon.forwarding import ForwardingConfig
from tests.helpers.builders import ADMIN_TOKEN, WEBHOOK_SECRET, RecordingNotifier

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from beacon.admission import CounterStore
    from beacon.api.app import AppDependencies
    from beacon.vault import CredentialVault


@pytest.fixture
def beacon_config() -> BeaconConfig:
    """Return service settings with signing and admin access enabled."""
    return BeaconConfig(webhook_secret=WEBHOOK_SECRET, admin_token=ADMIN_TOKEN)


@pytest.fixture
def api_notifier() -> RecordingNotifier:
    """Return the notifier the API hands new jobs to."""
    return RecordingNotifier()


@pytest.fixture
def counter_store() -> CounterStore:
    """Return a process-local admission counter store."""
    return InMemoryCounterStore()


@pytest.fixture
def app_deps(  # noqa: PLR0913 - each collaborator is its own fixture
    session_factory: async_sessionmaker[AsyncSession],
    beacon_config: BeaconConfig,
    api_notifier: RecordingNotifier,
    counter_store: CounterStore,
    vault: CredentialVault,
) -> AppDependencies:
    """Build full application dependencies over the test database."""
    return build_app_dependencies(
        session_factory,
        beacon_config,
        notifier=api_notifier,
        counter_store=counter_store,
        vault=vault,
        forwarding_config=ForwardingConfig(),
    )


@pytest_asyncio.fixture
async def conductor(
    app_deps: AppDependencies,
) -> cabc.AsyncIterator[falcon.testing.ASGIConductor]:
    """Yield an ASGI conductor sharing the test's event loop and database."""
    async with falcon.testing.ASGIConductor(create_app(app_deps)) as client:
        yield client
