"""
Redis-based session store implementation.

This module provides a Redis-backed implementation of the SessionStore
interface. Session records are stored as JSON strings under their sid, and
each authenticated user has a set of sids under
``<prefix>user_sessions:<uid>`` that is healed lazily whenever it is read.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar, Union

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import (
    AuthenticationError,
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
)

from config.settings import StoreOptions, StoreSettings, summarize_validation_errors
from errors.exceptions import (
    authentication_failed,
    invalid_options,
    session_store_unavailable,
)
from session.codec import TTL, decode_session, encode_session, session_owner, to_text, ttl_to_seconds
from session.events import CONNECT, DISCONNECT, EventHandler, StoreEvents
from session.store import SessionStore
from session.user_index import UserSessionIndex
from telemetry.service import RedisSpan, TelemetryService, get_telemetry_service

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures of the connection itself. AuthenticationError is a subclass of
# ConnectionError and is only treated as fatal inside connect().
TRANSPORT_ERRORS = (RedisConnectionError, RedisTimeoutError)


class RedisSessionStore(SessionStore):
    """
    Redis-backed session store implementation.
    
    Transport failures never reach callers of the session operations: reads
    return None (or an empty list), writes return normally, and the store
    emits a ``disconnect`` event. The next successful command emits
    ``connect``.
    
    Attributes:
        options: Validated StoreOptions
        prefix: Key prefix for user sets, stripped from returned sids
        index: The user session index key layout and reconciliation
        events: Per-instance connect/disconnect subscriptions
        client: Redis async client instance
    """
    
    def __init__(
        self,
        options: Optional[Union[StoreOptions, Mapping[str, Any]]] = None,
        telemetry: Optional[TelemetryService] = None,
    ):
        """
        Initialize the Redis session store.
        
        Args:
            options: StoreOptions or an equivalent mapping
                (``client``, ``host``, ``port``, ``socket``, ``db``, ``pass``,
                ``prefix``). Defaults to localhost:6379.
            telemetry: Telemetry service for spans and metrics. Falls back
                to the global service when not given.
        
        Raises:
            SessionStoreException: If the options fail validation.
        """
        self.options = self._coerce_options(options)
        self.prefix = self.options.prefix
        self.index = UserSessionIndex(self.prefix)
        self.events = StoreEvents(self._spawn)
        self._telemetry = telemetry
        self._background_tasks: set[asyncio.Future] = set()
        self._connected: Optional[bool] = None
        
        if self.options.client is not None:
            ignored = self.options.ignored_fields()
            if ignored:
                logger.warning(
                    "Redis client supplied, ignoring connection options",
                    extra={"extra_data": {"ignored_options": ignored}}
                )
            self.client = self.options.client
            self._owns_client = False
        else:
            self.client = self._create_client(self.options)
            self._owns_client = True
    
    @classmethod
    def from_settings(
        cls,
        settings: StoreSettings,
        telemetry: Optional[TelemetryService] = None,
    ) -> "RedisSessionStore":
        """Create a store from environment settings."""
        return cls(StoreOptions.from_settings(settings), telemetry=telemetry)
    
    @staticmethod
    def _coerce_options(
        options: Optional[Union[StoreOptions, Mapping[str, Any]]]
    ) -> StoreOptions:
        if options is None:
            return StoreOptions()
        if isinstance(options, StoreOptions):
            return options
        if not isinstance(options, Mapping):
            raise invalid_options(
                f"Expected StoreOptions or a mapping, got {type(options).__name__}"
            )
        try:
            return StoreOptions.model_validate(dict(options))
        except ValidationError as e:
            missing_fields, invalid_fields = summarize_validation_errors(e)
            raise invalid_options(details={
                "missing_fields": missing_fields,
                "invalid_fields": invalid_fields,
            }) from e
    
    @staticmethod
    def _create_client(options: StoreOptions) -> redis.Redis:
        """
        Build a client from the connection options.
        
        The password and database are part of the connection parameters, so
        the client re-authenticates and re-selects on every reconnect.
        """
        connection_kwargs = {
            "db": options.db or 0,
            "password": options.pass_,
            "decode_responses": True,
        }
        if options.socket:
            logger.debug(f"Init redis with socket: {options.socket}")
            return redis.Redis(unix_socket_path=options.socket, **connection_kwargs)
        
        logger.debug(f"Init redis with host: {options.host}, port: {options.port}")
        return redis.Redis(host=options.host, port=options.port, **connection_kwargs)
    
    # Lifecycle
    
    @property
    def connected(self) -> Optional[bool]:
        """Last observed connection state; None until the first command."""
        return self._connected
    
    def on(self, event: str, handler: EventHandler) -> EventHandler:
        """Subscribe to ``connect`` or ``disconnect``."""
        return self.events.on(event, handler)
    
    def off(self, event: str, handler: EventHandler) -> None:
        """Unsubscribe from ``connect`` or ``disconnect``."""
        self.events.off(event, handler)
    
    async def connect(self) -> None:
        """
        Verify the connection to Redis.
        
        Raises:
            SessionStoreException: If Redis rejects the credentials. Other
                connection failures only emit ``disconnect``.
        """
        try:
            await self.client.ping()
        except AuthenticationError as e:
            error = authentication_failed(details={"reason": str(e)})
            logger.error(
                "Redis authentication failed",
                extra={"extra_data": error.to_dict()}
            )
            raise error from e
        except TRANSPORT_ERRORS as e:
            self._mark_disconnected("connect", e)
            return
        self._mark_connected()
    
    async def drain(self) -> None:
        """Wait for background index updates and async event handlers."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
    
    async def close(self) -> None:
        """
        Drain background work and close the Redis connection.
        
        A client passed in through the options is left open for its owner.
        """
        await self.drain()
        if self._owns_client:
            await self.client.aclose()
    
    async def health_check(self) -> bool:
        """
        Check connectivity and health of the Redis store.
        
        Returns:
            True if Redis answers PING, False otherwise.
        """
        try:
            result = await self.client.ping()
        except TRANSPORT_ERRORS as e:
            self._mark_disconnected("health_check", e)
            return False
        except Exception as e:
            logger.warning(f"Session store health check failed: {e}")
            return False
        self._mark_connected()
        return result is True
    
    # Session operations
    
    async def get(self, sid: str) -> Optional[dict[str, Any]]:
        """
        Retrieve a session record by sid.
        
        Returns:
            The record, or None if absent, expired, corrupt, or Redis is
            unreachable.
        """
        data = await self._execute("get", lambda: self.client.get(sid), key=sid)
        logger.debug(f"get session {sid}: {'found' if data else 'none'}")
        return decode_session(data)
    
    async def set(
        self,
        sid: str,
        sess: dict[str, Any],
        ttl: Optional[TTL] = None
    ) -> None:
        """
        Store a session record and register it under its owner.
        
        The record write and the user set update run in one MULTI/EXEC, so
        an authenticated sid is a member of its owner's set as soon as this
        returns.
        
        Args:
            sid: Session id, already carrying any key prefix.
            sess: JSON-serializable session record.
            ttl: Milliseconds or timedelta; rounded up to whole seconds.
                Missing or zero stores the record without expiry.
        
        Raises:
            TypeError: If ``sess`` is not JSON serializable.
        """
        seconds = ttl_to_seconds(ttl)
        uid = session_owner(sess)
        payload = encode_session(sess)
        
        async def write() -> Any:
            async with self.client.pipeline(transaction=True) as pipe:
                if uid is not None:
                    pipe.sadd(self.index.key_for(uid), sid)
                if seconds:
                    pipe.setex(sid, seconds, payload)
                else:
                    pipe.set(sid, payload)
                return await pipe.execute()
        
        if seconds:
            logger.debug(f"SETEX {sid} {seconds}")
        else:
            logger.debug(f"SET {sid}")
        await self._execute("set", write, key=sid)
    
    async def destroy(self, sid: str) -> None:
        """
        Delete a session record.
        
        The sid stays in its owner's set until the next
        all_user_sessions() call finds it missing and removes it.
        """
        logger.debug(f"DEL {sid}")
        await self._execute("destroy", lambda: self.client.delete(sid), key=sid)
    
    async def all_user_sessions(self, uid: Any) -> list[dict[str, Any]]:
        """
        List the live, authenticated sessions of a user.
        
        Members of the user's set whose record is missing, corrupt, or no
        longer authenticated are skipped and removed from the set in the
        background. Call drain() to wait for that removal.
        
        Args:
            uid: The user identifier stored under ``passport.user``.
        
        Returns:
            Records in set order, each with ``sid`` set to the sid
            without the configured prefix.
        """
        key = self.index.key_for(uid)
        members = await self._execute(
            "smembers", lambda: self.client.smembers(key), default=set(), key=key
        )
        sids = [to_text(member) for member in members]
        if not sids:
            return []
        
        raw_values = await self._execute(
            "mget", lambda: self.client.mget(sids), key=key, count=len(sids)
        )
        if raw_values is None:
            return []
        
        result = self.index.reconcile(sids, raw_values)
        if result.stale:
            logger.debug(
                f"Removing {len(result.stale)} stale sessions from {key}",
                extra={"extra_data": {"key": key, "stale": result.stale}}
            )
            self._record_metric("session_store.stale_sessions_removed", len(result.stale))
            self._spawn(self._remove_stale(key, result.stale))
        return result.sessions
    
    async def _remove_stale(self, key: str, sids: list[str]) -> None:
        await self._execute(
            "srem", lambda: self.client.srem(key, *sids), key=key, count=len(sids)
        )
    
    # Internals
    
    async def _execute(
        self,
        operation: str,
        command: Callable[[], Awaitable[T]],
        default: Optional[T] = None,
        key: Optional[str] = None,
        count: Optional[int] = None,
    ) -> Optional[T]:
        """
        Run one Redis round trip, turning transport errors into events.
        
        Returns:
            The command result, or ``default`` if Redis was unreachable.
        """
        with self._span(operation, key, count) as span:
            try:
                result = await command()
            except TRANSPORT_ERRORS as e:
                span.record_failure(e)
                self._mark_disconnected(operation, e)
                return default
        self._mark_connected()
        return result
    
    def _mark_connected(self) -> None:
        if self._connected is True:
            return
        self._connected = True
        logger.info("Redis session store connected")
        self.events.emit(CONNECT)
    
    def _mark_disconnected(self, operation: str, exc: Exception) -> None:
        logger.warning(
            f"Redis unavailable during {operation}: {exc}",
            extra={"extra_data": {"operation": operation, "error": str(exc)}}
        )
        if self._connected is False:
            return
        self._connected = False
        error = session_store_unavailable(
            f"Redis unavailable during {operation}",
            details={"operation": operation, "reason": str(exc)}
        )
        error.__cause__ = exc
        self.events.emit(DISCONNECT, error)
    
    def _spawn(self, awaitable: Awaitable[Any]) -> asyncio.Future:
        task = asyncio.ensure_future(awaitable)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_done)
        return task
    
    def _on_background_done(self, task: asyncio.Future) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background session store task failed",
                exc_info=(type(exc), exc, exc.__traceback__)
            )
    
    def _telemetry_service(self) -> Optional[TelemetryService]:
        return self._telemetry or get_telemetry_service()
    
    def _span(self, operation: str, key: Optional[str], count: Optional[int]) -> RedisSpan:
        telemetry = self._telemetry_service()
        if telemetry is None:
            return RedisSpan(None, operation)
        return telemetry.redis_span(operation, key=key, count=count)
    
    def _record_metric(self, name: str, value: float) -> None:
        telemetry = self._telemetry_service()
        if telemetry is not None:
            telemetry.record_metric(name, value, tags={"prefix": self.prefix})
