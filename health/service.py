"""
Health reporting for a Redis session store.

SessionStoreHealthCheck follows the store's own connect/disconnect events
and combines them with a timed PING. A store that answers but dropped its
connection since the previous check is reported as degraded.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from config.settings import StoreSettings
from errors.exceptions import SessionStoreException
from session.events import DISCONNECT
from session.redis_store import RedisSessionStore

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"


@dataclass
class SessionStoreHealth:
    """
    One health report for a session store.
    
    Attributes:
        status: "healthy", "degraded" or "unhealthy"
        connected: The store's connection state after the ping
        ping_ms: PING round trip in milliseconds, None if it timed out
        disconnects: Disconnects observed since the previous report
        total_disconnects: Disconnects observed since the check was attached
        last_error: Message of the most recent disconnect or ping failure
        checked_at: When the report was taken
    """
    status: str
    connected: Optional[bool]
    ping_ms: Optional[float]
    disconnects: int
    total_disconnects: int
    last_error: Optional[str]
    checked_at: datetime
    
    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "connected": self.connected,
            "ping_ms": None if self.ping_ms is None else round(self.ping_ms, 2),
            "disconnects": self.disconnects,
            "total_disconnects": self.total_disconnects,
            "last_error": self.last_error,
            "checked_at": self.checked_at.isoformat().replace("+00:00", "Z"),
        }


class SessionStoreHealthCheck:
    """
    Tracks the health of one RedisSessionStore.
    
    The check subscribes to the store's ``disconnect`` event when created;
    call detach() to unsubscribe.
    
    Attributes:
        store: The session store being watched
        ping_timeout: Seconds to wait for PING before reporting unhealthy
    """
    
    def __init__(self, store: RedisSessionStore, ping_timeout: float = 5.0):
        self.store = store
        self.ping_timeout = ping_timeout
        self.total_disconnects = 0
        self.last_error: Optional[str] = None
        self._reported_disconnects = 0
        store.on(DISCONNECT, self._on_disconnect)
    
    @classmethod
    def from_settings(
        cls, store: RedisSessionStore, settings: StoreSettings
    ) -> "SessionStoreHealthCheck":
        return cls(store, ping_timeout=settings.health_check_timeout)
    
    def _on_disconnect(self, error: SessionStoreException) -> None:
        self.total_disconnects += 1
        self.last_error = error.message
    
    def detach(self) -> None:
        """Stop following the store's events."""
        self.store.off(DISCONNECT, self._on_disconnect)
    
    async def check(self) -> SessionStoreHealth:
        """
        Ping the store and report its state.
        
        Returns:
            "unhealthy" if PING failed or timed out, "degraded" if it
            succeeded but the store disconnected since the previous report,
            "healthy" otherwise.
        """
        started = time.perf_counter()
        try:
            answered = await asyncio.wait_for(
                self.store.health_check(), timeout=self.ping_timeout
            )
            ping_ms: Optional[float] = (time.perf_counter() - started) * 1000
        except asyncio.TimeoutError:
            answered, ping_ms = False, None
            self.last_error = f"PING timed out after {self.ping_timeout}s"
        
        disconnects = self.total_disconnects - self._reported_disconnects
        self._reported_disconnects = self.total_disconnects
        
        if not answered:
            status = UNHEALTHY
        elif disconnects:
            status = DEGRADED
        else:
            status = HEALTHY
        
        report = SessionStoreHealth(
            status=status,
            connected=self.store.connected,
            ping_ms=ping_ms,
            disconnects=disconnects,
            total_disconnects=self.total_disconnects,
            last_error=self.last_error,
            checked_at=datetime.now(timezone.utc),
        )
        if status != HEALTHY:
            logger.warning(
                f"Session store {status}",
                extra={"extra_data": report.to_dict()}
            )
        return report
