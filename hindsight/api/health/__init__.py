"""Liveness and readiness probes for the collector.

Usage
-----
Import health resources for route registration::

    from hindsight.api.health.resources import HealthResource, ReadyResource
"""
