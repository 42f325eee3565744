"""Beacon HTTP API layer.

Usage
-----
Create and run the application::

    from beacon.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # intake and admin endpoints

"""

from beacon.api.app import create_app

__all__ = ["create_app"]
