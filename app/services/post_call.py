"""Turning finished call audio into transcripts and notes"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple
from app.config import settings
from app.database.models import CallNote as DBCallNote
from app.models import events
from app.models.note import NoteSource
from app.services.ai_client import AIClient
from app.services.broadcaster import DashboardBroadcaster
from app.services.call_store import CallStore
from app.services.stream_sessions import StreamSession
from app.services.telephony import TelephonyClient
from app.utils import supabase_storage
from app.utils.audio_utils import calculate_duration, encode_wav

logger = logging.getLogger(__name__)


def audio_file_name(call_sid: str, when: Optional[datetime] = None) -> str:
    """call_<sid>_<sortable timestamp>.wav"""
    stamp = (when or datetime.utcnow()).isoformat(timespec="microseconds").replace(":", "-").replace(".", "-")
    return f"call_{call_sid}_{stamp}.wav"


class PostCallProcessor:
    """Runs the transcription pipeline for stream sessions and recordings"""

    def __init__(
        self,
        store: CallStore,
        ai: AIClient,
        telephony: TelephonyClient,
        broadcaster: DashboardBroadcaster,
        audio_dir: Optional[str] = None,
    ):
        self.store = store
        self.ai = ai
        self.telephony = telephony
        self.broadcaster = broadcaster
        self.audio_dir = Path(audio_dir or settings.AUDIO_STORAGE_PATH)

    async def _write_audio_file(self, call_sid: str, data: bytes) -> Tuple[str, Path]:
        file_name = audio_file_name(call_sid)
        file_path = self.audio_dir / file_name

        def write():
            self.audio_dir.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(data)

        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, write)
        logger.info(f"Created WAV file: {file_path} ({len(data)} bytes)")
        return file_name, file_path

    async def process_stream(self, session: StreamSession) -> Optional[DBCallNote]:
        """
        Finalize a claimed stream session into a call note.

        Returns None when there was no audio or any step failed; nothing is
        persisted in that case. The session itself is already out of the
        accumulator, so it is discarded either way.
        """
        call_sid = session.call_sid
        payload = session.payload
        if not payload:
            logger.info(f"No audio data to process for call {call_sid}")
            return None

        logger.info(
            f"Processing {session.chunk_count} audio chunks for call {call_sid} "
            f"({calculate_duration(len(payload), settings.AUDIO_SAMPLE_RATE, settings.AUDIO_CHANNELS):.1f}s)"
        )
        wav = encode_wav(payload, sample_rate=settings.AUDIO_SAMPLE_RATE, channels=settings.AUDIO_CHANNELS)

        try:
            file_name, file_path = await self._write_audio_file(call_sid, wav)
            storage_url = await supabase_storage.upload_audio_file(f"{call_sid}/{file_name}", wav)
            transcript = await self.ai.transcribe(wav, file_name)
            notes = await self.ai.summarize(transcript)
            note = await self.store.create_note(
                call_sid=call_sid,
                stream_sid=session.stream_sid or f"stream-{call_sid}",
                transcript=transcript,
                notes=notes,
                source=NoteSource.AUDIO_STREAM.value,
                audio_chunks=session.chunk_count,
                audio_size=len(wav),
                audio_file_path=str(file_path),
                audio_file_name=file_name,
                audio_storage_url=storage_url,
            )
        except Exception as e:
            logger.error(f"Error processing audio stream for call {call_sid}: {e}")
            return None

        await self.broadcaster.broadcast(events.note_created(call_sid, NoteSource.AUDIO_STREAM.value))
        logger.info(f"Stream processing completed for call {call_sid}")
        return note

    async def process_recording(
        self,
        call_sid: Optional[str],
        recording_sid: Optional[str],
        recording_url: Optional[str] = None,
        conference_sid: Optional[str] = None,
    ) -> Optional[DBCallNote]:
        """Transcribe a Twilio recording into a call note"""
        if not recording_sid:
            logger.warning(f"Recording event for call {call_sid} has no RecordingSid, skipping")
            return None
        note_key = call_sid or conference_sid
        if not note_key:
            logger.warning(f"Recording {recording_sid} has neither CallSid nor ConferenceSid, skipping")
            return None

        try:
            audio = await self.telephony.fetch_recording(recording_sid)
            transcript = await self.ai.transcribe(audio, f"{recording_sid}.mp3", content_type="audio/mpeg")
            notes = await self.ai.summarize(transcript)
            note = await self.store.create_note(
                call_sid=note_key,
                conference_sid=conference_sid,
                recording_sid=recording_sid,
                recording_url=recording_url,
                transcript=transcript,
                notes=notes,
                source=NoteSource.RECORDING.value,
                audio_size=len(audio),
            )
        except Exception as e:
            logger.error(f"Error processing recording {recording_sid}: {e}")
            return None

        await self.broadcaster.broadcast(events.note_created(note_key, NoteSource.RECORDING.value))
        logger.info(f"Notes generated for {'conference' if conference_sid and not call_sid else 'call'} {note_key}")
        return note
