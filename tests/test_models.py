"""Tests for data models and event parsing"""

import pytest
from datetime import datetime, timedelta
from app.models.call import ActiveCall, CallStatus
from app.models.events import (
    CallStatusChanged,
    ConferenceUpdate,
    IncomingCall,
    RecordingAvailable,
    StreamMedia,
    StreamStarted,
    StreamStopped,
    parse_stream_message,
    parse_webhook,
)
from app.models.note import CallNote, NoteSource
from app.models.stats import DashboardStats


def test_call_status_parse():
    assert CallStatus.parse("in-progress") == CallStatus.IN_PROGRESS
    assert CallStatus.parse("Answered") == CallStatus.IN_PROGRESS
    assert CallStatus.parse("no-answer") == CallStatus.NO_ANSWER
    assert CallStatus.parse("queued") is None
    assert CallStatus.parse(None) is None


def test_terminal_statuses():
    terminal = [s for s in CallStatus if s.is_terminal]

    assert set(terminal) == {
        CallStatus.COMPLETED,
        CallStatus.BUSY,
        CallStatus.FAILED,
        CallStatus.NO_ANSWER,
        CallStatus.CANCELED,
        CallStatus.ENDED,
    }
    assert CallStatus.RINGING.is_first_contact
    assert not CallStatus.IN_CONFERENCE.is_first_contact


def test_active_call_duration():
    start = datetime(2024, 1, 1, 12, 0, 0)
    call = ActiveCall(call_sid="CA1", start_time=start)

    assert call.duration_ms is None
    call = call.model_copy(update={"end_time": start + timedelta(seconds=2.5)})
    assert call.duration_ms == 2500


def test_webhook_without_status_is_incoming_call():
    event = parse_webhook({"CallSid": "CA1", "From": "+1", "To": "+2"})

    assert isinstance(event, IncomingCall)
    assert (event.call_sid, event.from_number, event.to_number) == ("CA1", "+1", "+2")


def test_webhook_status_callback():
    event = parse_webhook({"callSid": "CA1", "CallStatus": "ringing"})

    assert isinstance(event, CallStatusChanged)
    assert event.status == "ringing"


def test_webhook_conference_event():
    event = parse_webhook({
        "ConferenceSid": "CF1",
        "StatusCallbackEvent": "participant-join",
        "CallSid": "CA1",
        "CallStatus": "in-progress",
    })

    assert isinstance(event, ConferenceUpdate)
    assert (event.conference_sid, event.event, event.call_sid) == ("CF1", "participant-join", "CA1")


def test_webhook_recording_wins():
    event = parse_webhook({
        "CallSid": "CA1",
        "CallStatus": "completed",
        "ConferenceSid": "CF1",
        "StatusCallbackEvent": "conference-end",
        "RecordingSid": "RE1",
        "RecordingUrl": "https://api.twilio.com/RE1",
    })

    assert isinstance(event, RecordingAvailable)
    assert event.recording_sid == "RE1"
    assert event.conference_sid == "CF1"


def test_webhook_requires_call_sid():
    with pytest.raises(ValueError):
        parse_webhook({"CallStatus": "ringing"})


def test_stream_messages():
    start = parse_stream_message(
        {"event": "start", "streamSid": "MZ1", "start": {"callSid": "CA1", "streamSid": "MZ1"}},
        None,
    )
    media = parse_stream_message({"event": "media", "media": {"payload": "AAA="}}, "CA1")
    stop = parse_stream_message({"event": "stop", "stop": {"callSid": "CA1"}}, "CA1")

    assert isinstance(start, StreamStarted) and start.stream_sid == "MZ1"
    assert isinstance(media, StreamMedia) and media.payload == "AAA="
    assert isinstance(stop, StreamStopped) and stop.call_sid == "CA1"


def test_stream_messages_needing_no_handling():
    assert parse_stream_message({"event": "connected", "protocol": "Call"}, None) is None
    assert parse_stream_message({"event": "media", "media": {"payload": "AAA="}}, None) is None
    assert parse_stream_message({"event": "stop"}, None) is None
    assert parse_stream_message({"event": "mark"}, "CA1") is None


def test_malformed_stream_message():
    with pytest.raises(ValueError):
        parse_stream_message({"event": "start"}, None)
    with pytest.raises(ValueError):
        parse_stream_message({"event": "media", "media": None}, "CA1")


def test_note_serialization():
    note = CallNote(
        id=1,
        call_sid="CA1",
        stream_sid="MZ1",
        transcript="hello",
        notes="- hello",
        source=NoteSource.AUDIO_STREAM,
        audio_chunks=3,
        created_at=datetime.utcnow(),
    )

    data = note.model_dump(mode="json", by_alias=True)

    assert data["callSid"] == "CA1"
    assert data["streamId"] == "MZ1"
    assert data["source"] == "audio_stream"


def test_empty_stats_payload():
    payload = DashboardStats().to_payload()

    assert payload["users"]["total"] == 0
    assert payload["calls"]["thisWeek"] == 0
    assert payload["notes"]["fromRecording"] == 0
