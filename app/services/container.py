"""Wiring of the call-handling services"""

import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine
from app.config import settings
from app.database.connection import build_engine, build_session_factory, init_db
from app.services.ai_client import AIClient
from app.services.broadcaster import DashboardBroadcaster
from app.services.call_registry import CallRegistry
from app.services.call_store import CallStore
from app.services.lifecycle import CallLifecycle
from app.services.post_call import PostCallProcessor
from app.services.stats import StatsAggregator
from app.services.stream_sessions import AudioAccumulator
from app.services.telephony import TelephonyClient

logger = logging.getLogger(__name__)


class CallServices:
    """Owns the in-memory call state and the services that share it"""

    def __init__(
        self,
        engine: Optional[AsyncEngine] = None,
        ai: Optional[AIClient] = None,
        telephony: Optional[TelephonyClient] = None,
        audio_dir: Optional[str] = None,
        stats_interval: Optional[float] = None,
        initial_stats_delay: Optional[float] = None,
        assistant_number: Optional[str] = None,
    ):
        self.engine = engine or build_engine()
        self.session_factory = build_session_factory(self.engine)

        self.store = CallStore(self.session_factory, self.engine.dialect.name)
        self.registry = CallRegistry()
        self.accumulator = AudioAccumulator()
        self.stats = StatsAggregator(self.session_factory)
        self.broadcaster = DashboardBroadcaster(
            self.stats,
            interval=stats_interval if stats_interval is not None else settings.STATS_BROADCAST_INTERVAL,
            initial_delay=initial_stats_delay if initial_stats_delay is not None else settings.INITIAL_STATS_DELAY,
        )
        self.ai = ai or AIClient()
        self.telephony = telephony or TelephonyClient()
        self.processor = PostCallProcessor(
            self.store,
            self.ai,
            self.telephony,
            self.broadcaster,
            audio_dir=audio_dir,
        )
        self.lifecycle = CallLifecycle(
            self.registry,
            self.accumulator,
            self.store,
            self.processor,
            self.broadcaster,
            assistant_number=assistant_number if assistant_number is not None else settings.USER_PHONE_NUMBER,
        )

    async def start(self):
        """Create tables and start the periodic dashboard push"""
        await init_db(self.engine)
        self.broadcaster.start()

    async def stop(self):
        await self.broadcaster.stop()
        await self.lifecycle.drain()
        await self.engine.dispose()
        logger.info("Call services stopped")
