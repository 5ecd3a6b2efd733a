"""Hindsight collector HTTP API layer.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application: health probes, the ``POST /api/ingest`` endpoint, and
the lifespan middleware that runs the stream listener beside it.

Usage
-----
Create and run the application::

    from hindsight.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # collector mode

"""

from hindsight.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
