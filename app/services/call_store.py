"""Durable storage for calls and call notes"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import async_sessionmaker
from app.database.models import Call as DBCall, CallNote as DBCallNote
from app.models.call import CallStatus, TERMINAL_STATUSES

logger = logging.getLogger(__name__)


def _insert_for(dialect_name: str):
    """Dialect specific INSERT supporting ON CONFLICT"""
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert
    return insert


class CallStore:
    """Reads and writes calls and call notes"""

    def __init__(self, session_factory: async_sessionmaker, dialect_name: str = "sqlite"):
        self.session_factory = session_factory
        self.insert = _insert_for(dialect_name)

    async def upsert_call(
        self,
        call_sid: str,
        status: Optional[CallStatus] = None,
        from_number: Optional[str] = None,
        to_number: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        conference_id: Optional[str] = None,
        is_assistant_call: Optional[bool] = None,
    ) -> Optional[DBCall]:
        """
        Create or update the call row keyed by call_sid in one statement.

        Fields passed as None leave the stored value alone. The first start
        and end times win; a terminal status is never replaced by a
        non-terminal one. Duration is recomputed whenever an end time exists.
        """
        now = datetime.utcnow()
        calls = DBCall.__table__
        values: Dict[str, Any] = {
            "call_sid": call_sid,
            "from_number": from_number,
            "to_number": to_number,
            "status": (status or CallStatus.INCOMING).value,
            "start_time": start_time or now,
            "end_time": end_time,
            "conference_id": conference_id,
            "is_assistant_call": bool(is_assistant_call),
            "created_at": now,
            "updated_at": now,
        }

        stmt = self.insert(calls).values(**values)
        excluded = stmt.excluded
        updates: Dict[str, Any] = {
            "updated_at": excluded.updated_at,
            "start_time": func.coalesce(calls.c.start_time, excluded.start_time),
        }
        if status is not None:
            if status in TERMINAL_STATUSES:
                updates["status"] = excluded.status
            else:
                terminal = [s.value for s in TERMINAL_STATUSES]
                updates["status"] = case(
                    (calls.c.status.in_(terminal), calls.c.status),
                    else_=excluded.status,
                )
        if end_time is not None:
            updates["end_time"] = func.coalesce(calls.c.end_time, excluded.end_time)
        if from_number is not None:
            updates["from_number"] = excluded.from_number
        if to_number is not None:
            updates["to_number"] = excluded.to_number
        if conference_id is not None:
            updates["conference_id"] = excluded.conference_id
        if is_assistant_call is not None:
            updates["is_assistant_call"] = excluded.is_assistant_call

        stmt = stmt.on_conflict_do_update(index_elements=[calls.c.call_sid], set_=updates)

        try:
            async with self.session_factory() as session:
                await session.execute(stmt)
                result = await session.execute(select(DBCall).where(DBCall.call_sid == call_sid))
                db_call = result.scalar_one()
                if db_call.end_time and db_call.start_time:
                    db_call.duration = int((db_call.end_time - db_call.start_time).total_seconds() * 1000)
                await session.commit()
                logger.info(f"Upserted call {call_sid} (status: {db_call.status})")
                return db_call
        except Exception as e:
            logger.error(f"Error upserting call {call_sid}: {e}")
            return None

    async def get_call(self, call_sid: str) -> Optional[DBCall]:
        async with self.session_factory() as session:
            result = await session.execute(select(DBCall).where(DBCall.call_sid == call_sid))
            return result.scalar_one_or_none()

    async def find_unfinished_calls(self) -> List[DBCall]:
        """Calls whose stored status is not terminal"""
        terminal = [s.value for s in TERMINAL_STATUSES]
        async with self.session_factory() as session:
            result = await session.execute(
                select(DBCall).where(DBCall.status.not_in(terminal)).order_by(DBCall.start_time)
            )
            return list(result.scalars().all())

    async def create_note(self, **fields) -> DBCallNote:
        """Insert a call note; errors propagate so callers can abort"""
        async with self.session_factory() as session:
            note = DBCallNote(**fields)
            session.add(note)
            await session.commit()
            await session.refresh(note)
            logger.info(f"Saved {note.source} note for call {note.call_sid}")
            return note

    async def get_note(self, call_sid: str) -> Optional[DBCallNote]:
        """Most recent note for a call"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(DBCallNote)
                .where(DBCallNote.call_sid == call_sid)
                .order_by(DBCallNote.created_at.desc(), DBCallNote.id.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def get_audio_note(self, call_sid: str) -> Optional[DBCallNote]:
        """Most recent note for a call that references an audio file"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(DBCallNote)
                .where(DBCallNote.call_sid == call_sid, DBCallNote.audio_file_path.is_not(None))
                .order_by(DBCallNote.created_at.desc(), DBCallNote.id.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def list_notes(self, with_audio: bool = False) -> List[DBCallNote]:
        """All notes, newest first"""
        query = select(DBCallNote)
        if with_audio:
            query = query.where(DBCallNote.audio_file_path.is_not(None))
        query = query.order_by(DBCallNote.created_at.desc(), DBCallNote.id.desc())
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())
