"""Call note models"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional
from enum import Enum


class NoteSource(str, Enum):
    """Where the transcribed audio came from"""
    AUDIO_STREAM = "audio_stream"
    RECORDING = "recording"


class CallNote(BaseModel):
    """Call note as returned by the API"""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = Field(None, description="Database ID")
    call_sid: str = Field(..., serialization_alias="callSid")
    conference_sid: Optional[str] = Field(None, serialization_alias="conferenceSid")
    stream_sid: Optional[str] = Field(None, serialization_alias="streamId")
    recording_sid: Optional[str] = Field(None, serialization_alias="recordingSid")
    recording_url: Optional[str] = Field(None, serialization_alias="recordingUrl")
    transcript: str
    notes: str
    source: NoteSource = NoteSource.AUDIO_STREAM
    audio_chunks: int = Field(0, serialization_alias="audioChunks")
    audio_size: int = Field(0, serialization_alias="audioSize")
    audio_file_path: Optional[str] = Field(None, serialization_alias="audioFilePath")
    audio_file_name: Optional[str] = Field(None, serialization_alias="audioFileName")
    audio_storage_url: Optional[str] = Field(None, serialization_alias="audioStorageUrl")
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    updated_at: Optional[datetime] = Field(None, serialization_alias="updatedAt")


class AudioFile(BaseModel):
    """Downloadable audio file entry"""
    call_sid: str = Field(..., serialization_alias="callSid")
    file_name: Optional[str] = Field(None, serialization_alias="fileName")
    file_size: int = Field(0, serialization_alias="fileSize")
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    has_transcript: bool = Field(False, serialization_alias="hasTranscript")
    download_url: str = Field(..., serialization_alias="downloadUrl")
