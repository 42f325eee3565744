"""Destination registry: sealed writes, decrypted reads.

Writes go through the credential vault before touching the database.
Reads for dispatch decrypt per call and return the plaintext only in
memory; nothing decrypted is ever written back.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy import delete, select

from beacon.connectors.registry import validate_credentials
from beacon.destinations.errors import DestinationConfigError
from beacon.destinations.models import (
    DestinationInput,
    DestinationView,
    ResolvedDestination,
)
from beacon.destinations.storage import Destination
from beacon.logging import get_logger, log_info, log_warning
from beacon.vault import VaultDecryptError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from beacon.routing.types import DestinationType
    from beacon.vault import CredentialVault

__all__ = ["DestinationRegistry"]

logger = get_logger(__name__)


class DestinationRegistry:
    """Manage destination rows and resolve them for delivery."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        vault: CredentialVault,
    ) -> None:
        """Store the session factory and the vault used for credentials."""
        self._session_factory = session_factory
        self._vault = vault

    async def upsert(self, data: DestinationInput) -> str:
        """Create or update the destination identified by ``(type, name)``.

        Returns
        -------
        str
            Identifier of the written row.

        Raises
        ------
        DestinationConfigError
            If ``config`` does not match the connector for ``type``.
        VaultConfigError
            If the encryption key is missing or too short.

        """
        problem = validate_credentials(data.type, data.config)
        if problem is not None:
            raise DestinationConfigError.invalid(data.type, problem)
        sealed = self._vault.seal(data.config)
        async with self._session_factory() as session:
            existing = await session.scalar(
                select(Destination).where(
                    Destination.type == data.type,
                    Destination.name == data.name,
                )
            )
            if existing is None:
                existing = Destination(type=data.type, name=data.name)
                session.add(existing)
            existing.is_enabled = data.is_enabled
            existing.config_enc = sealed
            existing.include_events = list(data.include_events)
            existing.exclude_events = list(data.exclude_events)
            await session.commit()
            log_info(
                logger,
                "Destination %s/%s saved (enabled=%s)",
                data.type,
                data.name,
                data.is_enabled,
            )
            return existing.id

    async def delete(self, destination_id: str) -> bool:
        """Delete a destination, returning False when it did not exist."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(Destination).where(Destination.id == destination_id)
            )
            await session.commit()
        return result.rowcount == 1

    async def list_all(self) -> list[DestinationView]:
        """Return every destination with its configuration decrypted.

        Rows whose ciphertext cannot be opened are still listed, with
        ``config`` unset and ``config_error`` describing the failure.
        """
        async with self._session_factory() as session:
            rows = (
                await session.scalars(
                    select(Destination).order_by(Destination.type, Destination.name)
                )
            ).all()
        views: list[DestinationView] = []
        for row in rows:
            config, error = self._open(row)
            views.append(
                DestinationView(
                    id=row.id,
                    type=row.type,
                    name=row.name,
                    is_enabled=row.is_enabled,
                    config=config,
                    include_events=list(row.include_events or []),
                    exclude_events=list(row.exclude_events or []),
                    config_error=error,
                )
            )
        return views

    async def resolve_for_dispatch(
        self,
        intended: cabc.Collection[DestinationType],
        event_name: str,
    ) -> list[ResolvedDestination]:
        """Return enabled destinations of the intended types that accept ``event_name``.

        Configuration is decrypted for the caller's attempt only.
        Decryption failures are reported on the resolved destination so
        the caller can record them as a failed delivery; configuration
        errors from the vault propagate.
        """
        if not intended:
            return []
        async with self._session_factory() as session:
            rows = (
                await session.scalars(
                    select(Destination)
                    .where(
                        Destination.is_enabled.is_(True),
                        Destination.type.in_(list(intended)),
                    )
                    .order_by(Destination.type, Destination.name)
                )
            ).all()
        resolved: list[ResolvedDestination] = []
        for row in rows:
            if not row.accepts(event_name):
                continue
            config, error = self._open(row)
            resolved.append(
                ResolvedDestination(
                    id=row.id,
                    type=row.type,
                    name=row.name,
                    config=config,
                    config_error=error,
                )
            )
        return resolved

    def _open(self, row: Destination) -> tuple[dict[str, typ.Any] | None, str | None]:
        try:
            config = self._vault.open(row.config_enc)
        except VaultDecryptError as exc:
            log_warning(logger, "Destination %s config unreadable: %s", row.id, exc)
            return (None, str(exc))
        if not isinstance(config, dict):
            return (None, "sealed config is not an object")
        return (config, None)
