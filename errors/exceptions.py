"""
Exception classes for the Redis session store.

This module provides the SessionStoreException class and convenience
factory functions for creating session store exceptions with proper
error codes.
"""

from typing import Any, Optional

from errors.codes import ErrorCode, is_fatal


class SessionStoreException(Exception):
    """
    Base exception class for all session store errors.
    
    This exception provides structured error information including:
    - error_code: A standardized error code from the ErrorCode enum
    - message: A human-readable error message
    - details: Optional additional context (e.g., field-level errors)
    - fatal: Whether the store is unusable until reconfigured
    
    Example:
        raise SessionStoreException(
            error_code=ErrorCode.INVALID_OPTIONS,
            message="Invalid store options",
            details={"port": "Input should be less than or equal to 65535"}
        )
    """
    
    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        details: Optional[dict[str, Any]] = None
    ):
        """
        Initialize a SessionStoreException.
        
        Args:
            error_code: The error code from the ErrorCode enum
            message: A human-readable error message
            details: Optional dictionary with additional error context
        """
        self.error_code = error_code
        self.message = message
        self.details = details
        super().__init__(message)
    
    @property
    def fatal(self) -> bool:
        return is_fatal(self.error_code)
    
    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for structured logging.
        
        Returns:
            Dictionary containing error_code, message, fatal, and details
        """
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
            "fatal": self.fatal,
        }
        if self.details is not None:
            result["details"] = self.details
        return result
    
    def __repr__(self) -> str:
        return (
            f"SessionStoreException(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, details={self.details!r})"
        )


def authentication_failed(
    message: str = "Redis authentication failed",
    details: Optional[dict[str, Any]] = None
) -> SessionStoreException:
    """Create an authentication failed exception."""
    return SessionStoreException(
        error_code=ErrorCode.AUTHENTICATION_FAILED,
        message=message,
        details=details
    )


def invalid_options(
    message: str = "Invalid session store options",
    details: Optional[dict[str, Any]] = None
) -> SessionStoreException:
    """Create an invalid options exception."""
    return SessionStoreException(
        error_code=ErrorCode.INVALID_OPTIONS,
        message=message,
        details=details
    )


def session_store_unavailable(
    message: str = "Session store unavailable",
    details: Optional[dict[str, Any]] = None
) -> SessionStoreException:
    """Create a session store unavailable exception."""
    return SessionStoreException(
        error_code=ErrorCode.SESSION_STORE_UNAVAILABLE,
        message=message,
        details=details
    )
