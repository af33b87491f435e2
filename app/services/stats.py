"""Dashboard rollup counts"""

import asyncio
import logging
from datetime import datetime, timedelta
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker
from app.database.models import Call as DBCall, CallNote as DBCallNote, User as DBUser
from app.models.note import NoteSource
from app.models.stats import CallStats, DashboardStats, NoteStats, UserStats

logger = logging.getLogger(__name__)


class StatsAggregator:
    """Counts users, calls and notes; never raises to its caller"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def _count(self, model, *criteria) -> int:
        # One session per count so the counts of a group can run concurrently
        async with self.session_factory() as session:
            query = select(func.count()).select_from(model)
            if criteria:
                query = query.where(*criteria)
            result = await session.execute(query)
            return result.scalar_one()

    async def user_stats(self) -> UserStats:
        week_ago = datetime.utcnow() - timedelta(days=7)
        total, active, admins, recent = await asyncio.gather(
            self._count(DBUser),
            self._count(DBUser, DBUser.is_active.is_(True)),
            self._count(DBUser, DBUser.role == "admin"),
            self._count(DBUser, DBUser.created_at >= week_ago),
        )
        return UserStats(total=total, active=active, admins=admins, regular=total - admins, recent=recent)

    async def call_stats(self) -> CallStats:
        """Call counts; "today" starts at UTC midnight, matching the naive UTC start times stored"""
        now = datetime.utcnow()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_ago = now - timedelta(days=7)
        total, today, this_week, assistant_calls = await asyncio.gather(
            self._count(DBCall),
            self._count(DBCall, DBCall.start_time >= today_start),
            self._count(DBCall, DBCall.start_time >= week_ago),
            self._count(DBCall, DBCall.is_assistant_call.is_(True)),
        )
        return CallStats(total=total, today=today, this_week=this_week, assistant_calls=assistant_calls)

    async def note_stats(self) -> NoteStats:
        day_ago = datetime.utcnow() - timedelta(hours=24)
        total, from_stream, from_recording, recent = await asyncio.gather(
            self._count(DBCallNote),
            self._count(DBCallNote, DBCallNote.source == NoteSource.AUDIO_STREAM.value),
            self._count(DBCallNote, DBCallNote.source == NoteSource.RECORDING.value),
            self._count(DBCallNote, DBCallNote.created_at >= day_ago),
        )
        return NoteStats(total=total, from_stream=from_stream, from_recording=from_recording, recent=recent)

    async def get_stats(self) -> DashboardStats:
        """Best-effort snapshot; a group that fails is reported as zeros"""
        users, calls, notes = await asyncio.gather(
            self.user_stats(),
            self.call_stats(),
            self.note_stats(),
            return_exceptions=True,
        )
        if isinstance(users, BaseException):
            logger.error(f"Error getting user stats: {users}")
            users = UserStats()
        if isinstance(calls, BaseException):
            logger.error(f"Error getting call stats: {calls}")
            calls = CallStats()
        if isinstance(notes, BaseException):
            logger.error(f"Error getting note stats: {notes}")
            notes = NoteStats()
        return DashboardStats(users=users, calls=calls, notes=notes)
