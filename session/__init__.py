"""
Redis session persistence for web session middleware.

This package provides the session store interface, its Redis
implementation, and the per-user session index the Redis store maintains.
"""

from session.store import SessionStore
from session.redis_store import RedisSessionStore
from session.user_index import ReconcileResult, UserSessionIndex

__all__ = ["SessionStore", "RedisSessionStore", "ReconcileResult", "UserSessionIndex"]
