"""
Health reporting for the Redis session store.

This module provides a health check that combines a timed PING with the
store's connect/disconnect history.
"""

from health.service import (
    DEGRADED,
    HEALTHY,
    UNHEALTHY,
    SessionStoreHealth,
    SessionStoreHealthCheck,
)

__all__ = [
    "DEGRADED",
    "HEALTHY",
    "UNHEALTHY",
    "SessionStoreHealth",
    "SessionStoreHealthCheck",
]
