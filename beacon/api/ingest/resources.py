"""Public intake resources: ``POST /track`` and ``POST /conversions``.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/track", TrackResource(dependencies))
    app.add_route("/conversions", ConversionResource(dependencies))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ
from http import HTTPStatus

from beacon.api.errors import SignatureRejectedError
from beacon.api.media import decode_json, read_raw_body
from beacon.events import ConversionInput, TrackEventInput
from beacon.webhooks import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    SignatureFailure,
    verify_signature,
)

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from beacon.api.admission import AdmissionGate
    from beacon.ingestion import IngestionService

__all__ = ["ConversionResource", "IngestResourceDependencies", "TrackResource"]


@dc.dataclass(frozen=True, slots=True)
class IngestResourceDependencies:
    """Collaborators shared by the intake resources.

    Attributes
    ----------
    ingestion
        Service that stores events and enqueues forwarding work.
    track_gate
        Admission policy for ``POST /track``.
    conversion_gate
        Admission policy for ``POST /conversions``.
    webhook_secret
        Secret for signed conversion calls; unsigned calls are accepted
        when unset.

    """

    ingestion: IngestionService
    track_gate: AdmissionGate
    conversion_gate: AdmissionGate
    webhook_secret: str | None = None


class TrackResource:
    """Accept client tracking events."""

    def __init__(self, dependencies: IngestResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._ingestion = dependencies.ingestion
        self._gate = dependencies.track_gate

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle ``POST /track``."""
        await self._gate.admit(req, resp)
        body = decode_json(await read_raw_body(req), TrackEventInput)
        receipt = await self._ingestion.track(body)
        resp.media = receipt.as_media()
        resp.status = HTTPStatus.OK


class ConversionResource:
    """Accept server-side conversions, optionally signed."""

    def __init__(self, dependencies: IngestResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._ingestion = dependencies.ingestion
        self._gate = dependencies.conversion_gate
        self._secret = dependencies.webhook_secret

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle ``POST /conversions``.

        When a webhook secret is configured the raw body is verified
        before it is parsed.

        Raises
        ------
        SignatureRejectedError
            If the signature or its timestamp does not verify.

        """
        await self._gate.admit(req, resp)
        raw = await read_raw_body(req)
        if self._secret is not None:
            result = verify_signature(
                raw,
                req.get_header(SIGNATURE_HEADER),
                self._secret,
                req.get_header(TIMESTAMP_HEADER),
            )
            if not result.valid:
                raise SignatureRejectedError(result.error or SignatureFailure.MISMATCH)
        body = decode_json(raw, ConversionInput)
        receipt = await self._ingestion.record_conversion(body)
        resp.media = receipt.as_media()
        resp.status = HTTPStatus.OK
