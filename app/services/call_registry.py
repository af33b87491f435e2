"""In-memory registry of calls that are currently live"""

import logging
from typing import Dict, List, Optional
from app.models.call import ActiveCall

logger = logging.getLogger(__name__)


class CallRegistry:
    """
    Fast-path view of active calls, keyed by call SID.

    Durable storage is the history; this map only answers "which calls are
    live right now" and may briefly disagree with the database.
    """

    def __init__(self):
        self._calls: Dict[str, ActiveCall] = {}

    def get(self, call_sid: str) -> Optional[ActiveCall]:
        return self._calls.get(call_sid)

    def upsert(self, call_sid: str, **attrs) -> ActiveCall:
        """Create the entry or merge non-None attributes into it"""
        existing = self._calls.get(call_sid)
        if existing is None:
            call = ActiveCall(call_sid=call_sid, **{k: v for k, v in attrs.items() if v is not None})
            logger.info(f"Call {call_sid} added to active calls")
        else:
            changes = {k: v for k, v in attrs.items() if v is not None}
            call = existing.model_copy(update=changes)
        self._calls[call_sid] = call
        return call

    def remove(self, call_sid: str) -> Optional[ActiveCall]:
        call = self._calls.pop(call_sid, None)
        if call is not None:
            logger.info(f"Call {call_sid} removed from active calls")
        return call

    def list_active(self) -> List[ActiveCall]:
        """All live calls, most recent first"""
        return sorted(self._calls.values(), key=lambda c: c.start_time, reverse=True)

    def __contains__(self, call_sid: str) -> bool:
        return call_sid in self._calls

    def __len__(self) -> int:
        return len(self._calls)
