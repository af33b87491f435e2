"""Call data models"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional
from enum import Enum


class CallStatus(str, Enum):
    """Call status enumeration"""
    INCOMING = "incoming"
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    IN_CONFERENCE = "in-conference"
    COMPLETED = "completed"
    BUSY = "busy"
    FAILED = "failed"
    NO_ANSWER = "no-answer"
    CANCELED = "canceled"
    ENDED = "ended"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["CallStatus"]:
        """Map a provider status string to a CallStatus, None if unknown"""
        if not value:
            return None
        value = value.strip().lower()
        if value == "answered":
            return cls.IN_PROGRESS
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_first_contact(self) -> bool:
        return self in (CallStatus.INCOMING, CallStatus.RINGING)


TERMINAL_STATUSES = frozenset({
    CallStatus.COMPLETED,
    CallStatus.BUSY,
    CallStatus.FAILED,
    CallStatus.NO_ANSWER,
    CallStatus.CANCELED,
    CallStatus.ENDED,
})


class ActiveCall(BaseModel):
    """Live call state held in the registry"""
    model_config = ConfigDict(populate_by_name=True)

    call_sid: str = Field(..., serialization_alias="callSid", description="Twilio call SID")
    from_number: Optional[str] = Field(None, serialization_alias="from", description="Caller phone number")
    to_number: Optional[str] = Field(None, serialization_alias="to", description="Callee phone number")
    status: CallStatus = Field(CallStatus.INCOMING, description="Call status")
    start_time: datetime = Field(default_factory=datetime.utcnow, serialization_alias="startTime")
    end_time: Optional[datetime] = Field(None, serialization_alias="endTime")
    conference_id: Optional[str] = Field(None, serialization_alias="conferenceId")
    is_assistant_call: bool = Field(False, serialization_alias="isAssistantCall")

    @property
    def duration_ms(self) -> Optional[int]:
        if self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds() * 1000)


class CallRecord(BaseModel):
    """Persisted call as returned by the API"""
    model_config = ConfigDict(from_attributes=True)

    call_sid: str = Field(..., serialization_alias="callSid")
    from_number: Optional[str] = Field(None, serialization_alias="from")
    to_number: Optional[str] = Field(None, serialization_alias="to")
    status: str
    start_time: Optional[datetime] = Field(None, serialization_alias="startTime")
    end_time: Optional[datetime] = Field(None, serialization_alias="endTime")
    duration: Optional[int] = Field(None, description="Call duration in milliseconds")
    conference_id: Optional[str] = Field(None, serialization_alias="conferenceId")
    is_assistant_call: bool = Field(False, serialization_alias="isAssistantCall")
