"""Shared fixtures for unit and feature tests.

Tests run against SQLite by default. Set ``BEACON_TEST_DB=pglite`` to run
the database fixtures against an embedded Postgres from py-pglite; if it
cannot start, the fixtures fall back to SQLite.
"""

from __future__ import annotations

import contextlib
import logging
import os
import socket
import typing as typ

import dramatiq
import pytest
import pytest_asyncio
from dramatiq.brokers.stub import StubBroker
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from beacon.events import init_storage
from beacon.vault import CredentialVault
from tests.helpers.builders import TEST_ENCRYPTION_KEY

if typ.TYPE_CHECKING:
    from pathlib import Path

try:
    from py_pglite import PGliteConfig, PGliteManager
except ImportError:  # pragma: no cover - optional dependency
    PGliteConfig = PGliteManager = None

logger = logging.getLogger(__name__)

# Actors bind to the broker that is current when their module is imported.
_STUB_BROKER = StubBroker()
dramatiq.set_broker(_STUB_BROKER)


def _pglite_requested() -> bool:
    return (
        os.getenv("BEACON_TEST_DB", "sqlite").lower() == "pglite"
        and PGliteManager is not None
    )


def _loopback_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _open_pglite(stack: contextlib.AsyncExitStack, tmp_path: Path) -> str:
    """Start py-pglite under ``stack`` and return its asyncpg URL."""
    config = PGliteConfig(
        use_tcp=True,
        tcp_host="127.0.0.1",
        tcp_port=_loopback_port(),
        work_dir=tmp_path / "pglite",
    )
    stack.enter_context(PGliteManager(config))
    return (
        "postgresql+asyncpg://postgres:postgres@"
        f"{config.tcp_host}:{config.tcp_port}/postgres"
    )


async def _initialised_engine(url: str) -> AsyncEngine:
    engine = create_async_engine(url)
    try:
        await init_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


async def _engine_for_tests(
    stack: contextlib.AsyncExitStack, tmp_path: Path
) -> AsyncEngine:
    """Return an initialised engine whose teardown is registered on ``stack``."""
    if _pglite_requested():
        pglite = contextlib.AsyncExitStack()
        try:
            engine = await _initialised_engine(await _open_pglite(pglite, tmp_path))
        except Exception as exc:  # noqa: BLE001 - any startup failure means SQLite
            logger.warning("py-pglite unavailable, falling back to SQLite: %s", exc)
            await pglite.aclose()
        else:
            stack.push_async_exit(pglite)
            stack.push_async_callback(engine.dispose)
            return engine

    engine = await _initialised_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'beacon_test.db'}"
    )
    stack.push_async_callback(engine.dispose)
    return engine


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a session factory over a freshly initialised database."""
    async with contextlib.AsyncExitStack() as stack:
        engine = await _engine_for_tests(stack, tmp_path)
        yield async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def vault() -> CredentialVault:
    """Return a vault bound to a fixed, sufficiently long test key."""
    return CredentialVault.from_secret(TEST_ENCRYPTION_KEY)


@pytest.fixture
def stub_broker() -> typ.Iterator[StubBroker]:
    """Yield the shared stub broker with its queues emptied around the test."""
    _STUB_BROKER.flush_all()
    yield _STUB_BROKER
    _STUB_BROKER.flush_all()
