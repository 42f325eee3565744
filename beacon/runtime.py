"""Beacon runtime entrypoint.

This module provides the ASGI application factory used by Granian. When
``BEACON_DATABASE_URL`` is set, the runtime builds full
``AppDependencies`` so the app serves the intake and admin endpoints;
otherwise it starts in health-only mode.

Configuration is driven by environment variables:

- ``BEACON_HOST``: Bind address (default ``0.0.0.0``)
- ``BEACON_PORT``: Listen port (default ``8080``)
- ``BEACON_LOG_LEVEL``: Log level (default ``INFO``)
- ``BEACON_DATABASE_URL``: Database connection URL (optional)
- ``BEACON_REDIS_URL``: Shared rate-limit counters and Dramatiq broker

Run the service directly with ``python -m beacon.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from beacon.config import BeaconConfig
from beacon.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid BEACON_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def create_app() -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    Raises
    ------
    ValueError
        If a ``BEACON_*`` variable holds an unparseable value.

    """
    from beacon.api.app import create_app as _create_api_app

    config = BeaconConfig.from_env()
    if config.database_url is None:
        log_warning(logger, "BEACON_DATABASE_URL not set; serving health probes only")
        return _create_api_app()

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from beacon.api.factory import build_app_dependencies
    from beacon.forwarding.actor import DramatiqJobNotifier

    engine = create_async_engine(config.database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    deps = build_app_dependencies(
        session_factory,
        config,
        notifier=DramatiqJobNotifier(config.database_url),
    )
    return _create_api_app(deps)


def main() -> None:
    """Start the Beacon runtime server using Granian.

    Reads ``BEACON_HOST``, ``BEACON_PORT``, and ``BEACON_LOG_LEVEL`` from
    the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("BEACON_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port = _parse_port(os.environ.get("BEACON_PORT", "8080"))
    log_level_str = os.environ.get("BEACON_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid BEACON_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting Beacon runtime on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "beacon.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
