"""
Serialization helpers shared by the session store and the user index.

Session records are JSON objects stored as strings. Anything that does not
decode to a JSON object is treated as no session at all.
"""

import json
import logging
import math
from datetime import timedelta
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

TTL = Union[int, float, timedelta]

_MICROSECONDS_PER_SECOND = 1_000_000


def to_text(value: Union[str, bytes]) -> str:
    """Return ``value`` as text, decoding bytes from clients without decode_responses."""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def encode_session(sess: dict[str, Any]) -> str:
    """
    Serialize a session record.
    
    Raises:
        TypeError: If the record holds values that are not JSON serializable.
    """
    return json.dumps(sess)


def decode_session(data: Optional[Union[str, bytes]]) -> Optional[dict[str, Any]]:
    """
    Deserialize a stored session record.
    
    Args:
        data: Raw value as returned by Redis, or None when the key is absent.
    
    Returns:
        The session record, or None if the value is absent, empty, or
        cannot be decoded into a JSON object.
    """
    if not data:
        return None
    
    try:
        parsed = json.loads(to_text(data))
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        logger.debug(f"parse session error: {e}")
        return None
    
    if not isinstance(parsed, dict):
        logger.debug(f"parse session error: expected an object, got {type(parsed).__name__}")
        return None
    
    return parsed


def session_owner(sess: dict[str, Any]) -> Optional[Any]:
    """
    Return the authenticated user of a session record.
    
    The owner lives under ``passport.user``. Records without a passport,
    or whose passport has no user (logged out), have no owner.
    """
    passport = sess.get("passport")
    if not isinstance(passport, dict):
        return None
    user = passport.get("user")
    if user is None or user == "":
        return None
    return user


def ttl_to_seconds(ttl: Optional[TTL]) -> Optional[int]:
    """
    Convert a session TTL to whole seconds, rounding up.
    
    Numbers are milliseconds; timedelta values are converted exactly.
    
    Returns:
        The expiry in seconds, or None when the write should not expire
        (ttl missing, zero, negative, infinite or NaN).
    """
    if not ttl:
        return None
    
    if isinstance(ttl, timedelta):
        microseconds = ttl // timedelta(microseconds=1)
        seconds = -(-microseconds // _MICROSECONDS_PER_SECOND)
    elif not math.isfinite(ttl):
        logger.debug(f"non-finite session ttl {ttl!r}, storing without expiry")
        return None
    else:
        seconds = math.ceil(ttl / 1000)
    
    if seconds <= 0:
        return None
    return seconds
