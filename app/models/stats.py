"""Dashboard statistics models"""

from pydantic import BaseModel, Field


class UserStats(BaseModel):
    total: int = 0
    active: int = 0
    admins: int = 0
    regular: int = 0
    recent: int = 0


class CallStats(BaseModel):
    total: int = 0
    today: int = 0
    this_week: int = Field(0, serialization_alias="thisWeek")
    assistant_calls: int = Field(0, serialization_alias="assistantCalls")


class NoteStats(BaseModel):
    total: int = 0
    from_stream: int = Field(0, serialization_alias="fromStream")
    from_recording: int = Field(0, serialization_alias="fromRecording")
    recent: int = 0


class DashboardStats(BaseModel):
    """Combined snapshot pushed to dashboards"""
    users: UserStats = Field(default_factory=UserStats)
    calls: CallStats = Field(default_factory=CallStats)
    notes: NoteStats = Field(default_factory=NoteStats)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)
