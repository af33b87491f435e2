"""Per-call buffering of media stream audio frames"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
from app.utils.audio_utils import concat_frames

logger = logging.getLogger(__name__)


@dataclass
class StreamSession:
    """Audio received so far for one call's media stream"""
    call_sid: str
    stream_sid: Optional[str] = None
    frames: List[bytes] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.utcnow)
    processing: bool = False

    @property
    def chunk_count(self) -> int:
        return len(self.frames)

    @property
    def payload(self) -> bytes:
        return concat_frames(self.frames)


class AudioAccumulator:
    """Holds at most one StreamSession per call SID"""

    def __init__(self):
        self._sessions: Dict[str, StreamSession] = {}

    def start_session(self, call_sid: str, stream_sid: Optional[str] = None) -> StreamSession:
        existing = self._sessions.get(call_sid)
        if existing is not None:
            logger.warning(f"Stream session for call {call_sid} already open, keeping it")
            return existing
        session = StreamSession(call_sid=call_sid, stream_sid=stream_sid)
        self._sessions[call_sid] = session
        logger.info(f"Audio stream started for call {call_sid}")
        return session

    def append_frame(self, call_sid: str, frame: bytes) -> bool:
        """Buffer a frame; frames for calls without a session are dropped"""
        session = self._sessions.get(call_sid)
        if session is None or session.processing:
            return False
        session.frames.append(frame)
        return True

    def claim(self, call_sid: str) -> Optional[StreamSession]:
        """
        Take the session out for finalization.

        Only the first caller gets it: the session is flagged and removed in
        the same step, so a racing stop/terminal-status trigger gets None.
        """
        session = self._sessions.pop(call_sid, None)
        if session is None:
            return None
        if session.processing:
            logger.info(f"Audio stream for call {call_sid} already being processed")
            return None
        session.processing = True
        return session

    def get(self, call_sid: str) -> Optional[StreamSession]:
        return self._sessions.get(call_sid)

    def __contains__(self, call_sid: str) -> bool:
        return call_sid in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
