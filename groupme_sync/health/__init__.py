"""
groupme_sync.health - Connectivity checks

Provides the Google Sheets reachability check and the network wait used
before the first scheduled sync.
"""

from groupme_sync.health.checks import HealthCheckError, check_health, wait_for_network

__all__ = ["HealthCheckError", "check_health", "wait_for_network"]
