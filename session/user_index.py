"""
Secondary index from authenticated users to their session ids.

Each user owns a Redis set of sids under ``<prefix>user_sessions:<uid>``.
The set is only ever added to on save; entries pointing at expired,
destroyed, corrupt or logged-out sessions are found and reported here when
the set is read, so the store can remove them.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Union

from session.codec import decode_session, session_owner, to_text

USER_SESSIONS_SEGMENT = "user_sessions:"


@dataclass
class ReconcileResult:
    """
    Outcome of checking a user's session set against the stored records.
    
    Attributes:
        sessions: Live, authenticated records in set order, each carrying
            its unprefixed ``sid``
        stale: Set members that no longer reference a live authenticated
            record and should be removed from the set
    """
    sessions: list[dict[str, Any]] = field(default_factory=list)
    stale: list[str] = field(default_factory=list)


class UserSessionIndex:
    """Key layout and reconciliation logic for per-user session sets."""
    
    def __init__(self, prefix: str = ""):
        self.prefix = prefix
    
    def key_for(self, uid: Any) -> str:
        return f"{self.prefix}{USER_SESSIONS_SEGMENT}{uid}"
    
    def strip_prefix(self, sid: str) -> str:
        """Remove the configured prefix from the start of ``sid``."""
        if self.prefix and sid.startswith(self.prefix):
            return sid[len(self.prefix):]
        return sid
    
    def reconcile(
        self,
        sids: Sequence[Union[str, bytes]],
        raw_values: Sequence[Optional[Union[str, bytes]]],
    ) -> ReconcileResult:
        """
        Pair each sid with its bulk-fetched value and sort live from stale.
        
        Args:
            sids: Members of the user's session set, in fetch order
            raw_values: One raw value per sid, as returned by MGET
        
        Raises:
            ValueError: If the two sequences differ in length.
        """
        if len(sids) != len(raw_values):
            raise ValueError(
                f"Expected {len(sids)} session values, got {len(raw_values)}"
            )
        
        result = ReconcileResult()
        for member, data in zip(sids, raw_values):
            sid = to_text(member)
            sess = decode_session(data)
            if sess is None or session_owner(sess) is None:
                result.stale.append(sid)
                continue
            sess["sid"] = self.strip_prefix(sid)
            result.sessions.append(sess)
        return result
