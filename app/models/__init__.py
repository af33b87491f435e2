"""Data models for the application"""

from app.models.call import ActiveCall, CallRecord, CallStatus, TERMINAL_STATUSES
from app.models.note import AudioFile, CallNote, NoteSource
from app.models.stats import DashboardStats

__all__ = [
    "ActiveCall",
    "AudioFile",
    "CallNote",
    "CallRecord",
    "CallStatus",
    "DashboardStats",
    "NoteSource",
    "TERMINAL_STATUSES",
]
