"""Application factory for the Beacon Falcon ASGI application.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app with intake and admin endpoints::

    from beacon.api.app import create_app
    from beacon.api.factory import build_app_dependencies

    app = create_app(build_app_dependencies(session_factory, config))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from beacon.admission import ADMIN_POLICY, CONVERSIONS_POLICY, TRACKING_POLICY
from beacon.api.admission import AdmissionGate
from beacon.api.errors import register_error_handlers
from beacon.api.health.resources import HealthResource, ReadyResource
from beacon.config import BeaconConfig

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from beacon.admission import AdmissionLimiter, RateLimitPolicy
    from beacon.destinations import DestinationRegistry
    from beacon.ingestion import IngestionService

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    session_factory
        Async session factory, also used by the readiness probe.
    ingestion
        Service behind ``/track`` and ``/conversions``.
    destinations
        Registry behind ``/admin/destinations``.
    limiter
        Admission limiter shared by every surface.
    config
        Secrets and admission settings.

    """

    session_factory: async_sessionmaker[AsyncSession]
    ingestion: IngestionService
    destinations: DestinationRegistry
    limiter: AdmissionLimiter
    config: BeaconConfig = dc.field(default_factory=BeaconConfig)


def _gate(deps: AppDependencies, policy: RateLimitPolicy) -> AdmissionGate:
    return AdmissionGate(
        deps.limiter,
        policy,
        trust_forwarded_for=deps.config.trust_forwarded_for,
    )


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Without *dependencies* only ``/health`` and ``/ready`` are
    registered. With them the app also serves ``POST /track``,
    ``POST /conversions`` and ``/admin/destinations``.

    Parameters
    ----------
    dependencies
        Optional application dependencies.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    app = falcon.asgi.App()

    app.add_route("/health", HealthResource())
    app.add_route(
        "/ready",
        ReadyResource(dependencies.session_factory if dependencies else None),
    )

    if dependencies is not None:
        from beacon.api.admin.resources import (
            AdminResourceDependencies,
            DestinationsResource,
        )
        from beacon.api.ingest.resources import (
            ConversionResource,
            IngestResourceDependencies,
            TrackResource,
        )

        ingest = IngestResourceDependencies(
            ingestion=dependencies.ingestion,
            track_gate=_gate(dependencies, TRACKING_POLICY),
            conversion_gate=_gate(dependencies, CONVERSIONS_POLICY),
            webhook_secret=dependencies.config.webhook_secret,
        )
        app.add_route("/track", TrackResource(ingest))
        app.add_route("/conversions", ConversionResource(ingest))
        app.add_route(
            "/admin/destinations",
            DestinationsResource(
                AdminResourceDependencies(
                    destinations=dependencies.destinations,
                    gate=_gate(dependencies, ADMIN_POLICY),
                    admin_token=dependencies.config.admin_token,
                )
            ),
        )

    register_error_handlers(app)
    return app
