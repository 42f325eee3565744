"""Shared fixtures for BDD feature tests.

pytest-bdd steps are synchronous and run each async call on its own
event loop, so scenarios use a non-pooled engine whose connections never
outlive the loop that opened them.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from beacon.events import init_storage
from tests.helpers import run_async

if typ.TYPE_CHECKING:
    from pathlib import Path


@dc.dataclass(frozen=True, slots=True)
class ScenarioDatabase:
    """Initialised database shared by the steps of one scenario."""

    url: str
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]


@pytest.fixture
def scenario_database(tmp_path: Path) -> typ.Iterator[ScenarioDatabase]:
    """Provision a fresh SQLite database for each scenario."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'scenario.db'}"
    engine = create_async_engine(url, poolclass=NullPool)

    async def _init() -> None:
        await init_storage(engine)

    run_async(_init)
    yield ScenarioDatabase(
        url=url,
        engine=engine,
        session_factory=async_sessionmaker(engine, expire_on_commit=False),
    )

    async def _dispose() -> None:
        await engine.dispose()

    run_async(_dispose)
