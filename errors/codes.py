"""
Error code catalog for the Redis session store.

This module defines the error codes raised by the session store. Transport
failures during normal operation are never raised to callers; the codes
below cover the conditions that are.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used by the session store.
    
    Each error code is either fatal (the store cannot be used until the
    configuration is fixed) or recoverable (the condition may clear on
    its own, e.g. after Redis comes back).
    """
    
    # Setup errors (fatal)
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    """Redis rejected the configured password"""
    
    INVALID_OPTIONS = "INVALID_OPTIONS"
    """The store options object failed validation"""
    
    # Runtime errors (recoverable)
    SESSION_STORE_UNAVAILABLE = "SESSION_STORE_UNAVAILABLE"
    """Redis is unreachable"""


# Codes that leave the store unusable until configuration changes
FATAL_ERROR_CODES: frozenset[ErrorCode] = frozenset({
    ErrorCode.AUTHENTICATION_FAILED,
    ErrorCode.INVALID_OPTIONS,
})


def is_fatal(error_code: ErrorCode) -> bool:
    """
    Check whether an error code represents a fatal setup failure.
    
    Args:
        error_code: The error code to look up
    
    Returns:
        True if the error cannot be recovered from without reconfiguration
    """
    return error_code in FATAL_ERROR_CODES
