"""Call lifecycle state machine"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Optional, Set
from app.models import events
from app.models.call import CallStatus, TERMINAL_STATUSES
from app.models.events import (
    CallStatusChanged,
    ConferenceUpdate,
    LifecycleEvent,
    RecordingAvailable,
)
from app.services.broadcaster import DashboardBroadcaster
from app.services.call_registry import CallRegistry
from app.services.call_store import CallStore
from app.services.post_call import PostCallProcessor
from app.services.stream_sessions import AudioAccumulator
from app.utils.audio_utils import decode_frame

logger = logging.getLogger(__name__)


class CallLifecycle:
    """
    Applies webhook and media stream events to the live call state.

    Events for one call may arrive late, twice, or after a restart wiped
    the registry, so every transition is idempotent: durable writes go
    through CallStore.upsert_call and audio finalization is guarded by
    AudioAccumulator.claim. Post-call work runs in background tasks;
    drain() waits for it.
    """

    def __init__(
        self,
        registry: CallRegistry,
        accumulator: AudioAccumulator,
        store: CallStore,
        processor: PostCallProcessor,
        broadcaster: DashboardBroadcaster,
        assistant_number: Optional[str] = None,
    ):
        self.registry = registry
        self.accumulator = accumulator
        self.store = store
        self.processor = processor
        self.broadcaster = broadcaster
        self.assistant_number = assistant_number
        self._tasks: Set[asyncio.Task] = set()

    async def dispatch(self, event: LifecycleEvent) -> bool:
        """
        Handle one event.

        Returns True when the event was the call's first contact, meaning
        the webhook should answer with TwiML. Never raises.
        """
        try:
            kind = event.kind
            if kind == "incoming_call":
                return await self.handle_incoming_call(event.call_sid, event.from_number, event.to_number)
            elif kind == "call_status":
                return await self.handle_call_status(event)
            elif kind == "conference":
                await self.handle_conference(event)
            elif kind == "recording":
                self.handle_recording(event)
            elif kind == "stream_started":
                await self.handle_stream_start(event.call_sid, event.stream_sid)
            elif kind == "stream_media":
                self.handle_stream_media(event.call_sid, event.payload)
            elif kind == "stream_stopped":
                await self.handle_stream_stop(event.call_sid)
            elif kind == "stream_closed":
                self.handle_stream_closed(event.call_sid)
            else:
                logger.warning(f"Unhandled lifecycle event: {kind}")
        except Exception as e:
            logger.error(f"Error handling {getattr(event, 'kind', event)} event: {e}", exc_info=True)
        return False

    def is_assistant_call(self, from_number: Optional[str]) -> bool:
        return bool(self.assistant_number) and from_number == self.assistant_number

    async def handle_incoming_call(
        self,
        call_sid: str,
        from_number: Optional[str],
        to_number: Optional[str],
        status: CallStatus = CallStatus.INCOMING,
    ) -> bool:
        """First contact: register the call and create its durable row"""
        if call_sid in self.registry:
            logger.info(f"Call {call_sid} already active, answering again")
            return True

        logger.info(f"Incoming call from {from_number} to {to_number}, CallSid: {call_sid}, Status: {status.value}")
        return await self._track_call(call_sid, status, from_number, to_number)

    async def handle_call_status(self, event: CallStatusChanged) -> bool:
        call_sid = event.call_sid
        status = CallStatus.parse(event.status)
        if status is None:
            logger.warning(f"Ignoring unknown status '{event.status}' for call {call_sid}")
            return False

        logger.info(f"Call status update: {call_sid} - {status.value}")

        if status.is_terminal:
            await self.end_call(call_sid, status)
            return False

        if call_sid in self.registry:
            self.registry.upsert(call_sid, status=status)
            return False

        if status.is_first_contact:
            return await self.handle_incoming_call(call_sid, event.from_number, event.to_number, status)

        if status == CallStatus.IN_PROGRESS:
            # Missed the first webhook (e.g. restart), track it from here on
            await self._track_call(call_sid, status, event.from_number, event.to_number)
            return False

        logger.info(f"Ignoring status '{status.value}' for unknown call {call_sid}")
        return False

    async def _track_call(
        self,
        call_sid: str,
        status: CallStatus,
        from_number: Optional[str],
        to_number: Optional[str],
    ) -> bool:
        """
        Upsert the durable row, then add the call to the registry unless
        the stored row says the call already ended (late or replayed event).
        """
        start_time = datetime.utcnow()
        is_assistant = self.is_assistant_call(from_number)
        db_call = await self.store.upsert_call(
            call_sid,
            status=status,
            from_number=from_number,
            to_number=to_number,
            start_time=start_time,
            is_assistant_call=is_assistant if from_number else None,
        )
        if db_call is not None and CallStatus.parse(db_call.status) in TERMINAL_STATUSES:
            logger.info(f"Call {call_sid} already ended as '{db_call.status}', not tracking late '{status.value}' event")
            return False

        self.registry.upsert(
            call_sid,
            from_number=from_number,
            to_number=to_number,
            status=status,
            start_time=db_call.start_time if db_call is not None and db_call.start_time else start_time,
            is_assistant_call=is_assistant,
        )
        return True

    async def end_call(self, call_sid: str, status: CallStatus):
        """Terminal transition; safe to apply more than once"""
        end_time = datetime.utcnow()
        call = self.registry.get(call_sid)
        if call is not None:
            call = self.registry.upsert(call_sid, status=status, end_time=end_time)
            logger.info(f"Call {call_sid} ended with status '{status.value}'. Duration: {call.duration_ms}ms")
        else:
            logger.info(f"Call {call_sid} ended with status '{status.value}' - not in active calls, updating database only")

        await self.store.upsert_call(
            call_sid,
            status=status,
            end_time=end_time,
            from_number=call.from_number if call else None,
            to_number=call.to_number if call else None,
            start_time=call.start_time if call else None,
        )

        self.finalize_stream(call_sid)
        self.registry.remove(call_sid)
        await self.broadcaster.broadcast(events.call_ended(call_sid, status.value))

    async def handle_conference(self, event: ConferenceUpdate):
        logger.info(f"Conference {event.conference_sid} status: {event.event} for call {event.call_sid}")
        if event.event != "participant-join" or not event.call_sid:
            return
        if event.call_sid not in self.registry:
            logger.info(f"Conference participant {event.call_sid} is not an active call")
            return
        self.registry.upsert(event.call_sid, status=CallStatus.IN_CONFERENCE, conference_id=event.conference_sid)
        await self.store.upsert_call(
            event.call_sid,
            status=CallStatus.IN_CONFERENCE,
            conference_id=event.conference_sid,
        )

    def handle_recording(self, event: RecordingAvailable):
        logger.info(
            f"Recording event: {event.recording_sid} for call {event.call_sid} conference {event.conference_sid}"
        )
        self._spawn(
            self.processor.process_recording(
                event.call_sid,
                event.recording_sid,
                recording_url=event.recording_url,
                conference_sid=event.conference_sid,
            ),
            f"recording {event.recording_sid}",
        )

    async def handle_stream_start(self, call_sid: str, stream_sid: Optional[str] = None):
        self.accumulator.start_session(call_sid, stream_sid)
        await self.broadcaster.broadcast(events.call_started(call_sid))

    def handle_stream_media(self, call_sid: str, payload: str) -> bool:
        try:
            frame = decode_frame(payload)
        except ValueError as e:
            logger.warning(f"Dropping media frame for call {call_sid}: {e}")
            return False
        return self.accumulator.append_frame(call_sid, frame)

    async def handle_stream_stop(self, call_sid: str):
        logger.info(f"Audio stream stopped for call: {call_sid}")
        self.finalize_stream(call_sid)
        if call_sid in self.registry:
            await self.end_call(call_sid, CallStatus.COMPLETED)

    def handle_stream_closed(self, call_sid: str):
        self.finalize_stream(call_sid)

    def finalize_stream(self, call_sid: str) -> bool:
        """Start post-call processing if this call has unclaimed audio"""
        session = self.accumulator.claim(call_sid)
        if session is None:
            return False
        self._spawn(self.processor.process_stream(session), f"audio stream {call_sid}")
        return True

    def _spawn(self, work: Awaitable, description: str):
        task = asyncio.create_task(self._guard(work, description))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guard(self, work: Awaitable, description: str):
        try:
            await work
        except Exception as e:
            logger.error(f"Post-call processing failed for {description}: {e}", exc_info=True)

    async def drain(self):
        """Wait for outstanding post-call work"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
