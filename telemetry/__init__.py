"""
Telemetry module for the session store.

This module provides:
- JSONFormatter for structured JSON log output
- TelemetryService for logging setup, Redis spans and metrics
- RedisSpan, the tracing scope around one Redis round trip
"""

from telemetry.service import (
    JSONFormatter,
    RedisSpan,
    TelemetryService,
    get_telemetry_service,
    initialize_telemetry,
)

__all__ = [
    "JSONFormatter",
    "RedisSpan",
    "TelemetryService",
    "get_telemetry_service",
    "initialize_telemetry",
]
