"""
Error handling module for the Redis session store.

This module provides structured error handling with:
- ErrorCode enum for standardized error codes
- SessionStoreException for errors raised to callers
- Factory functions for the common error cases
"""

from errors.codes import ErrorCode, is_fatal
from errors.exceptions import (
    SessionStoreException,
    authentication_failed,
    invalid_options,
    session_store_unavailable,
)

__all__ = [
    "ErrorCode",
    "is_fatal",
    "SessionStoreException",
    "authentication_failed",
    "invalid_options",
    "session_store_unavailable",
]
