"""Inbound lifecycle events and outbound dashboard payloads"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, Literal, Mapping, Optional, Union


class IncomingCall(BaseModel):
    """Voice webhook for a new call that carries no CallStatus"""
    kind: Literal["incoming_call"] = "incoming_call"
    call_sid: str
    from_number: Optional[str] = None
    to_number: Optional[str] = None


class CallStatusChanged(BaseModel):
    """Status callback; status is the raw provider string"""
    kind: Literal["call_status"] = "call_status"
    call_sid: str
    status: str
    from_number: Optional[str] = None
    to_number: Optional[str] = None


class ConferenceUpdate(BaseModel):
    kind: Literal["conference"] = "conference"
    conference_sid: str
    event: str
    call_sid: Optional[str] = None


class RecordingAvailable(BaseModel):
    kind: Literal["recording"] = "recording"
    call_sid: Optional[str] = None
    recording_sid: Optional[str] = None
    recording_url: Optional[str] = None
    conference_sid: Optional[str] = None


class StreamStarted(BaseModel):
    kind: Literal["stream_started"] = "stream_started"
    call_sid: str
    stream_sid: Optional[str] = None


class StreamMedia(BaseModel):
    kind: Literal["stream_media"] = "stream_media"
    call_sid: str
    payload: str = Field(..., description="Base64 encoded mu-law audio frame")


class StreamStopped(BaseModel):
    kind: Literal["stream_stopped"] = "stream_stopped"
    call_sid: str


class StreamClosed(BaseModel):
    """Audio socket went away, with or without a stop message"""
    kind: Literal["stream_closed"] = "stream_closed"
    call_sid: str


LifecycleEvent = Union[
    IncomingCall,
    CallStatusChanged,
    ConferenceUpdate,
    RecordingAvailable,
    StreamStarted,
    StreamMedia,
    StreamStopped,
    StreamClosed,
]


def _field(fields: Mapping[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = fields.get(name)
        if value:
            return str(value)
    return None


def parse_webhook(fields: Mapping[str, Any]) -> LifecycleEvent:
    """
    Turn Twilio webhook parameters into a lifecycle event.

    Recording fields win over conference fields, conference fields over
    CallStatus; anything else is a brand new incoming call.

    Raises:
        ValueError: when a call event carries no CallSid
    """
    call_sid = _field(fields, "CallSid", "callSid")
    from_number = _field(fields, "From", "from")
    to_number = _field(fields, "To", "to")

    recording_sid = _field(fields, "RecordingSid")
    recording_url = _field(fields, "RecordingUrl")
    if recording_sid or recording_url:
        return RecordingAvailable(
            call_sid=call_sid,
            recording_sid=recording_sid,
            recording_url=recording_url,
            conference_sid=_field(fields, "ConferenceSid"),
        )

    conference_sid = _field(fields, "ConferenceSid")
    callback_event = _field(fields, "StatusCallbackEvent")
    if conference_sid and callback_event:
        return ConferenceUpdate(conference_sid=conference_sid, event=callback_event, call_sid=call_sid)

    if not call_sid:
        raise ValueError("Webhook is missing CallSid")

    call_status = _field(fields, "CallStatus", "callStatus")
    if call_status:
        return CallStatusChanged(
            call_sid=call_sid,
            status=call_status,
            from_number=from_number,
            to_number=to_number,
        )

    return IncomingCall(call_sid=call_sid, from_number=from_number, to_number=to_number)


def parse_stream_message(message: Mapping[str, Any], call_sid: Optional[str]) -> Optional[LifecycleEvent]:
    """
    Turn one Twilio media stream message into a lifecycle event.

    `call_sid` is the call bound to the socket by an earlier `start`. Returns
    None for messages that need no handling (`connected`, unknown events,
    media or stop before any start).

    Raises:
        ValueError: when a known event is missing its fields
    """
    event = message.get("event")
    try:
        if event == "start":
            start = message["start"]
            return StreamStarted(
                call_sid=start["callSid"],
                stream_sid=start.get("streamSid") or message.get("streamSid"),
            )
        if event == "media":
            if not call_sid:
                return None
            return StreamMedia(call_sid=call_sid, payload=message["media"]["payload"])
        if event == "stop":
            if not call_sid:
                return None
            return StreamStopped(call_sid=call_sid)
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed '{event}' stream message: {e}") from e
    return None


def _now() -> str:
    return datetime.utcnow().isoformat()


def stats_update(data: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "statsUpdate", "data": data, "timestamp": _now()}


def call_started(call_sid: str) -> Dict[str, Any]:
    return {"type": "callStarted", "callSid": call_sid, "timestamp": _now()}


def call_ended(call_sid: str, status: str) -> Dict[str, Any]:
    return {"type": "callEnded", "callSid": call_sid, "status": status, "timestamp": _now()}


def note_created(call_sid: str, source: str) -> Dict[str, Any]:
    return {"type": "noteCreated", "callSid": call_sid, "source": source, "timestamp": _now()}


def user_created(username: str) -> Dict[str, Any]:
    return {"type": "userCreated", "username": username, "timestamp": _now()}


def pong() -> Dict[str, Any]:
    return {"type": "pong"}
