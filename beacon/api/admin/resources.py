"""Administrative destination management guarded by ``X-Admin-Token``.

Usage
-----
Register the resource on the Falcon app::

    app.add_route("/admin/destinations", DestinationsResource(dependencies))

"""

from __future__ import annotations

import dataclasses as dc
import hmac
import typing as typ
from http import HTTPStatus

import msgspec

from beacon.api.errors import InvalidInputError, NotFoundError, UnauthorizedError
from beacon.api.media import decode_json, read_raw_body
from beacon.destinations import DestinationInput

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from beacon.api.admission import AdmissionGate
    from beacon.destinations import DestinationRegistry

__all__ = ["ADMIN_TOKEN_HEADER", "AdminResourceDependencies", "DestinationsResource"]

ADMIN_TOKEN_HEADER = "X-Admin-Token"


@dc.dataclass(frozen=True, slots=True)
class AdminResourceDependencies:
    """Collaborators for the administrative resources."""

    destinations: DestinationRegistry
    gate: AdmissionGate
    admin_token: str | None = None


class DestinationsResource:
    """List, upsert and delete destinations."""

    def __init__(self, dependencies: AdminResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._destinations = dependencies.destinations
        self._gate = dependencies.gate
        self._admin_token = dependencies.admin_token

    async def _authorize(self, req: Request, resp: Response) -> None:
        """Apply the admin rate limit, then compare the token in constant time.

        Raises
        ------
        UnauthorizedError
            If no admin token is configured, or the header does not match.

        """
        await self._gate.admit(req, resp)
        if self._admin_token is None:
            raise UnauthorizedError.not_configured()
        supplied = req.get_header(ADMIN_TOKEN_HEADER) or ""
        if not hmac.compare_digest(
            supplied.encode("utf-8"), self._admin_token.encode("utf-8")
        ):
            raise UnauthorizedError.missing_token()

    async def on_get(self, req: Request, resp: Response) -> None:
        """Handle ``GET /admin/destinations`` with decrypted configuration."""
        await self._authorize(req, resp)
        views = await self._destinations.list_all()
        resp.media = {"ok": True, "destinations": msgspec.to_builtins(views)}
        resp.status = HTTPStatus.OK

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle ``POST /admin/destinations``, upserting by type and name."""
        await self._authorize(req, resp)
        body = decode_json(await read_raw_body(req), DestinationInput)
        destination_id = await self._destinations.upsert(body)
        resp.media = {"ok": True, "id": destination_id}
        resp.status = HTTPStatus.OK

    async def on_delete(self, req: Request, resp: Response) -> None:
        """Handle ``DELETE /admin/destinations?id=...``."""
        await self._authorize(req, resp)
        destination_id = req.get_param("id")
        if not destination_id:
            msg = "id query parameter is required"
            raise InvalidInputError(msg)
        if not await self._destinations.delete(destination_id):
            raise NotFoundError("Destination", destination_id)
        resp.media = {"ok": True}
        resp.status = HTTPStatus.OK
