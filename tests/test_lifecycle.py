"""Tests for the call lifecycle state machine"""

import base64
import pytest
from pathlib import Path
from app.models.call import CallStatus
from app.models.events import (
    CallStatusChanged,
    ConferenceUpdate,
    IncomingCall,
    RecordingAvailable,
    StreamClosed,
    StreamMedia,
    StreamStarted,
    StreamStopped,
)
from app.utils.audio_utils import WAV_HEADER_SIZE, read_wav_header
from tests.conftest import ASSISTANT_NUMBER, FakeConnection


def frame(data: bytes) -> str:
    return base64.b64encode(data).decode()


def status(call_sid, value, from_number=None, to_number=None):
    return CallStatusChanged(call_sid=call_sid, status=value, from_number=from_number, to_number=to_number)


async def stream_audio(lifecycle, call_sid, frames, stream_sid="MZ1"):
    await lifecycle.dispatch(StreamStarted(call_sid=call_sid, stream_sid=stream_sid))
    for data in frames:
        await lifecycle.dispatch(StreamMedia(call_sid=call_sid, payload=frame(data)))


@pytest.mark.asyncio
async def test_ringing_then_completed(ready_services):
    lifecycle = ready_services.lifecycle
    dashboard = FakeConnection()
    ready_services.broadcaster.subscribe(dashboard)

    first = await lifecycle.dispatch(status("CA1", "ringing", "+15551234567", "+15557654321"))

    assert first is True
    assert ready_services.registry.get("CA1").status == CallStatus.RINGING

    await lifecycle.dispatch(status("CA1", "completed"))
    await lifecycle.drain()

    assert "CA1" not in ready_services.registry
    call = await ready_services.store.get_call("CA1")
    assert call.status == "completed"
    assert call.from_number == "+15551234567"
    assert call.end_time is not None
    assert call.duration is not None and call.duration >= 0
    assert dashboard.types() == ["callEnded"]


@pytest.mark.asyncio
async def test_one_registry_entry_until_terminal(ready_services):
    lifecycle = ready_services.lifecycle

    assert await lifecycle.dispatch(IncomingCall(call_sid="CA1", from_number="+1", to_number="+2"))
    assert await lifecycle.dispatch(status("CA1", "ringing")) is False
    assert await lifecycle.dispatch(status("CA1", "in-progress")) is False

    assert len(ready_services.registry) == 1
    assert ready_services.registry.get("CA1").status == CallStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_answered_is_an_alias_for_in_progress(ready_services):
    lifecycle = ready_services.lifecycle
    await lifecycle.dispatch(status("CA1", "ringing"))

    await lifecycle.dispatch(status("CA1", "answered"))

    assert ready_services.registry.get("CA1").status == CallStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_unknown_status_is_ignored(ready_services):
    assert await ready_services.lifecycle.dispatch(status("CA1", "teleported")) is False
    assert len(ready_services.registry) == 0
    assert await ready_services.store.get_call("CA1") is None


@pytest.mark.asyncio
async def test_in_progress_for_unknown_call_is_tracked(ready_services):
    """Test a call whose first webhook was missed (e.g. before a restart)"""
    await ready_services.lifecycle.dispatch(status("CA1", "in-progress", "+1", "+2"))

    assert ready_services.registry.get("CA1").status == CallStatus.IN_PROGRESS
    assert (await ready_services.store.get_call("CA1")).status == "in-progress"


@pytest.mark.asyncio
async def test_terminal_for_unknown_call_only_updates_database(ready_services):
    lifecycle = ready_services.lifecycle

    await lifecycle.dispatch(status("CA1", "failed"))
    await lifecycle.drain()

    assert len(ready_services.registry) == 0
    assert (await ready_services.store.get_call("CA1")).status == "failed"
    assert await ready_services.store.get_note("CA1") is None
    assert ready_services.ai.transcribed == []


@pytest.mark.asyncio
async def test_late_ringing_after_completed_is_not_tracked(ready_services):
    lifecycle = ready_services.lifecycle
    await lifecycle.dispatch(status("CA1", "ringing"))
    await lifecycle.dispatch(status("CA1", "completed"))

    first = await lifecycle.dispatch(status("CA1", "ringing"))

    assert first is False
    assert "CA1" not in ready_services.registry
    assert (await ready_services.store.get_call("CA1")).status == "completed"


@pytest.mark.asyncio
async def test_assistant_call_flag(ready_services):
    lifecycle = ready_services.lifecycle
    await lifecycle.dispatch(IncomingCall(call_sid="CA1", from_number=ASSISTANT_NUMBER, to_number="+2"))
    await lifecycle.dispatch(IncomingCall(call_sid="CA2", from_number="+15551234567", to_number="+2"))
    await lifecycle.dispatch(status("CA1", "in-progress"))

    assert ready_services.registry.get("CA1").is_assistant_call is True
    assert ready_services.registry.get("CA2").is_assistant_call is False
    assert (await ready_services.store.get_call("CA1")).is_assistant_call is True


@pytest.mark.asyncio
async def test_stream_becomes_note(ready_services):
    lifecycle = ready_services.lifecycle
    dashboard = FakeConnection()
    ready_services.broadcaster.subscribe(dashboard)
    await lifecycle.dispatch(status("CA1", "ringing", "+1", "+2"))

    await stream_audio(lifecycle, "CA1", [b"\x01" * 160, b"\x02" * 160, b"\x03" * 160])
    await lifecycle.dispatch(StreamStopped(call_sid="CA1"))
    await lifecycle.drain()

    note = await ready_services.store.get_note("CA1")
    assert note.source == "audio_stream"
    assert note.stream_sid == "MZ1"
    assert note.audio_chunks == 3
    assert note.transcript == ready_services.ai.transcript
    assert note.notes == ready_services.ai.notes
    assert note.audio_size == WAV_HEADER_SIZE + 480

    wav = Path(note.audio_file_path).read_bytes()
    assert Path(note.audio_file_path).name == note.audio_file_name
    assert note.audio_file_name.startswith("call_CA1_") and note.audio_file_name.endswith(".wav")
    header = read_wav_header(wav)
    assert header.data_length == 480
    assert header.sample_rate == 8000
    assert wav[WAV_HEADER_SIZE:] == b"\x01" * 160 + b"\x02" * 160 + b"\x03" * 160

    # stop on a registered call also ends it
    assert "CA1" not in ready_services.registry
    assert (await ready_services.store.get_call("CA1")).status == "completed"
    assert dashboard.types()[0] == "callStarted"
    assert sorted(dashboard.types()[1:]) == ["callEnded", "noteCreated"]


@pytest.mark.asyncio
async def test_duplicate_terminal_events_finalize_once(ready_services):
    lifecycle = ready_services.lifecycle
    await lifecycle.dispatch(status("CA1", "ringing"))
    await stream_audio(lifecycle, "CA1", [b"\x7f" * 160])

    await lifecycle.dispatch(status("CA1", "completed"))
    await lifecycle.dispatch(status("CA1", "completed"))
    await lifecycle.dispatch(StreamStopped(call_sid="CA1"))
    await lifecycle.dispatch(StreamClosed(call_sid="CA1"))
    await lifecycle.drain()

    assert len(ready_services.ai.transcribed) == 1
    assert len(await ready_services.store.list_notes()) == 1


@pytest.mark.asyncio
async def test_media_after_stop_is_ignored(ready_services):
    lifecycle = ready_services.lifecycle
    await stream_audio(lifecycle, "CA1", [b"\x01" * 160])
    await lifecycle.dispatch(StreamStopped(call_sid="CA1"))

    await lifecycle.dispatch(StreamMedia(call_sid="CA1", payload=frame(b"\x02" * 160)))
    await lifecycle.drain()

    assert "CA1" not in ready_services.accumulator
    note = await ready_services.store.get_note("CA1")
    assert note.audio_chunks == 1


@pytest.mark.asyncio
async def test_socket_close_without_stop_finalizes(ready_services):
    lifecycle = ready_services.lifecycle
    await lifecycle.dispatch(status("CA1", "in-progress"))
    await stream_audio(lifecycle, "CA1", [b"\x01" * 160])

    await lifecycle.dispatch(StreamClosed(call_sid="CA1"))
    await lifecycle.drain()

    assert (await ready_services.store.get_note("CA1")).audio_chunks == 1
    # closing the socket alone does not end the call
    assert "CA1" in ready_services.registry


@pytest.mark.asyncio
async def test_invalid_frame_is_dropped(ready_services):
    lifecycle = ready_services.lifecycle
    await stream_audio(lifecycle, "CA1", [b"\x01" * 160])

    await lifecycle.dispatch(StreamMedia(call_sid="CA1", payload="not base64!!"))

    assert ready_services.accumulator.get("CA1").chunk_count == 1


@pytest.mark.asyncio
async def test_empty_stream_is_not_transcribed(ready_services):
    lifecycle = ready_services.lifecycle
    await lifecycle.dispatch(StreamStarted(call_sid="CA1", stream_sid="MZ1"))

    await lifecycle.dispatch(StreamStopped(call_sid="CA1"))
    await lifecycle.drain()

    assert ready_services.ai.transcribed == []
    assert await ready_services.store.get_note("CA1") is None


@pytest.mark.asyncio
async def test_transcription_failure_writes_no_note(ready_services):
    lifecycle = ready_services.lifecycle
    ready_services.ai.fail_on = "transcribe"
    await stream_audio(lifecycle, "CA1", [b"\x01" * 160])

    await lifecycle.dispatch(StreamStopped(call_sid="CA1"))
    await lifecycle.drain()

    assert await ready_services.store.get_note("CA1") is None
    assert ready_services.ai.summarized == []
    assert "CA1" not in ready_services.accumulator


@pytest.mark.asyncio
async def test_summary_failure_writes_no_note(ready_services):
    lifecycle = ready_services.lifecycle
    ready_services.ai.fail_on = "summarize"
    await stream_audio(lifecycle, "CA1", [b"\x01" * 160])

    await lifecycle.dispatch(StreamStopped(call_sid="CA1"))
    await lifecycle.drain()

    assert await ready_services.store.get_note("CA1") is None


@pytest.mark.asyncio
async def test_recording_becomes_note(ready_services):
    lifecycle = ready_services.lifecycle
    dashboard = FakeConnection()
    ready_services.broadcaster.subscribe(dashboard)

    await lifecycle.dispatch(RecordingAvailable(
        call_sid="CA1",
        recording_sid="RE1",
        recording_url="https://api.twilio.com/recordings/RE1",
    ))
    await lifecycle.drain()

    note = await ready_services.store.get_note("CA1")
    assert note.source == "recording"
    assert note.recording_sid == "RE1"
    assert note.audio_size == len(ready_services.telephony.recording)
    assert ready_services.ai.transcribed[0] == ("RE1.mp3", ready_services.telephony.recording)
    assert dashboard.types() == ["noteCreated"]


@pytest.mark.asyncio
async def test_conference_recording_is_keyed_by_conference(ready_services):
    await ready_services.lifecycle.dispatch(RecordingAvailable(recording_sid="RE1", conference_sid="CF1"))
    await ready_services.lifecycle.drain()

    note = await ready_services.store.get_note("CF1")
    assert note.conference_sid == "CF1"


@pytest.mark.asyncio
async def test_recording_download_failure_writes_no_note(ready_services):
    ready_services.telephony.fail = True

    await ready_services.lifecycle.dispatch(RecordingAvailable(call_sid="CA1", recording_sid="RE1"))
    await ready_services.lifecycle.drain()

    assert await ready_services.store.get_note("CA1") is None


@pytest.mark.asyncio
async def test_conference_join(ready_services):
    lifecycle = ready_services.lifecycle
    await lifecycle.dispatch(status("CA1", "in-progress"))

    await lifecycle.dispatch(ConferenceUpdate(conference_sid="CF1", event="participant-join", call_sid="CA1"))

    call = ready_services.registry.get("CA1")
    assert call.status == CallStatus.IN_CONFERENCE
    assert call.conference_id == "CF1"
    stored = await ready_services.store.get_call("CA1")
    assert (stored.status, stored.conference_id) == ("in-conference", "CF1")


@pytest.mark.asyncio
async def test_conference_event_for_unknown_call_is_ignored(ready_services):
    await ready_services.lifecycle.dispatch(
        ConferenceUpdate(conference_sid="CF1", event="participant-join", call_sid="CA404")
    )

    assert len(ready_services.registry) == 0
    assert await ready_services.store.get_call("CA404") is None


@pytest.mark.asyncio
async def test_storage_failure_keeps_in_memory_transitions(ready_services):
    """Test a database outage does not stop calls being tracked"""
    lifecycle = ready_services.lifecycle
    dashboard = FakeConnection()
    ready_services.broadcaster.subscribe(dashboard)

    def broken_session():
        raise RuntimeError("database unavailable")

    ready_services.store.session_factory = broken_session

    first = await lifecycle.dispatch(status("CA1", "ringing", "+1", "+2"))

    assert first is True
    assert ready_services.registry.get("CA1").status == CallStatus.RINGING

    await lifecycle.dispatch(status("CA1", "completed"))
    await lifecycle.drain()

    assert len(ready_services.registry) == 0
    assert dashboard.types() == ["callEnded"]
