"""
Session store abstraction for external session storage.

This module defines the abstract interface for session stores used by web
session middleware: load, save and destroy a session record by id, plus a
per-user index of the sessions belonging to an authenticated user.
"""

from abc import ABC, abstractmethod
from typing import Optional, Any

from session.codec import TTL


class SessionStore(ABC):
    """
    Abstract base class for session storage implementations.
    
    All methods are async to support non-blocking I/O operations with
    external storage systems. Implementations must not raise transport
    errors from the session operations; an unavailable store behaves as
    an empty one.
    """
    
    @abstractmethod
    async def get(self, sid: str) -> Optional[dict[str, Any]]:
        """
        Retrieve a session record by session ID.
        
        Args:
            sid: Unique identifier for the session.
        
        Returns:
            The session record if found, None if it does not exist, has
            expired, or cannot be decoded.
        """
        pass
    
    @abstractmethod
    async def set(
        self, 
        sid: str, 
        sess: dict[str, Any], 
        ttl: Optional[TTL] = None
    ) -> None:
        """
        Store a session record with optional TTL.
        
        Args:
            sid: Unique identifier for the session.
            sess: Session record to store.
            ttl: Optional time-to-live, in milliseconds or as a timedelta.
                A missing or zero ttl stores the record without expiry.
        """
        pass
    
    @abstractmethod
    async def destroy(self, sid: str) -> None:
        """
        Delete a session record by session ID.
        
        This operation is idempotent - destroying a non-existent
        session does not raise an error.
        
        Args:
            sid: Unique identifier for the session to delete.
        """
        pass
    
    @abstractmethod
    async def all_user_sessions(self, uid: Any) -> list[dict[str, Any]]:
        """
        List the live, authenticated sessions of a user.
        
        Args:
            uid: The user identifier stored under ``passport.user``.
        
        Returns:
            Session records, each with its ``sid`` attached.
        """
        pass
    
    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check connectivity and health of the session store.
        
        Returns:
            True if the store is healthy and accessible, False otherwise.
        
        Note:
            This method should not raise exceptions - connectivity issues
            should be caught and result in a False return value.
        """
        pass
