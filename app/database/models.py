"""SQLAlchemy database models"""

from sqlalchemy import Boolean, Column, Integer, String, DateTime, Text, Index
from datetime import datetime
from app.database.connection import Base


class Call(Base):
    """Call database model"""
    __tablename__ = "calls"

    id = Column(Integer, primary_key=True, index=True)
    call_sid = Column(String, unique=True, index=True, nullable=False)
    from_number = Column(String)
    to_number = Column(String)
    status = Column(String, nullable=False, default="incoming")
    start_time = Column(DateTime, default=datetime.utcnow)
    end_time = Column(DateTime)
    duration = Column(Integer)  # Duration in milliseconds
    conference_id = Column(String)
    is_assistant_call = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CallNote(Base):
    """Transcript and generated notes for one finalized call audio"""
    __tablename__ = "call_notes"

    id = Column(Integer, primary_key=True, index=True)
    call_sid = Column(String, nullable=False, index=True)
    conference_sid = Column(String)
    stream_sid = Column(String)
    recording_sid = Column(String)
    recording_url = Column(String)
    transcript = Column(Text, nullable=False)
    notes = Column(Text, nullable=False)
    source = Column(String, nullable=False, default="audio_stream")
    audio_chunks = Column(Integer, nullable=False, default=0)
    audio_size = Column(Integer, nullable=False, default=0)  # Size in bytes
    audio_file_path = Column(String)
    audio_file_name = Column(String)
    audio_storage_url = Column(String)  # Supabase Storage URL when mirrored
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_call_notes_call_sid_created_at", "call_sid", "created_at"),
    )


class User(Base):
    """Dashboard user; managed elsewhere, only counted here"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False)
    email = Column(String, unique=True, nullable=False)
    role = Column(String, nullable=False, default="user")
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
