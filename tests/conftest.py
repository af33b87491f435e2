"""Shared fixtures and fake collaborators"""

import json
import pytest
import pytest_asyncio
from sqlalchemy.pool import NullPool
from starlette.websockets import WebSocketState
from app.database.connection import build_engine, init_db
from app.models.stats import DashboardStats
from app.services.ai_client import TranscriptionError
from app.services.container import CallServices
from app.services.telephony import TelephonyClient, TelephonyError

ASSISTANT_NUMBER = "+15550000000"


class FakeAIClient:
    """Stands in for OpenAI; records what it was asked to do"""

    def __init__(self, transcript="Caller asked about the March invoice.", notes="- Invoice question\n- Send copy"):
        self.transcript = transcript
        self.notes = notes
        self.fail_on = None
        self.transcribed = []
        self.summarized = []

    async def transcribe(self, audio, file_name, content_type="audio/wav"):
        self.transcribed.append((file_name, audio))
        if self.fail_on == "transcribe":
            raise TranscriptionError("whisper unavailable")
        return self.transcript

    async def summarize(self, transcript):
        self.summarized.append(transcript)
        if self.fail_on == "summarize":
            raise TranscriptionError("chat model unavailable")
        return self.notes


class FakeTelephony(TelephonyClient):
    """Real TwiML building, no Twilio network calls"""

    def __init__(self):
        super().__init__(account_sid="ACtest", auth_token="token")
        self.ended = []
        self.recording = b"ID3-fake-mp3-bytes"
        self.fail = False

    async def end_call(self, call_sid):
        if self.fail:
            raise TelephonyError(f"Failed to end call {call_sid}: boom")
        self.ended.append(call_sid)
        return "completed"

    async def fetch_recording(self, recording_sid):
        if self.fail:
            raise TelephonyError(f"Failed to fetch recording {recording_sid}: boom")
        return self.recording


class FakeConnection:
    """Dashboard socket double with the attributes the broadcaster reads"""

    def __init__(self, open=True, fail=False):
        state = WebSocketState.CONNECTED if open else WebSocketState.DISCONNECTED
        self.client_state = state
        self.application_state = state
        self.fail = fail
        self.sent = []

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(json.loads(text))

    def types(self):
        return [message.get("type") for message in self.sent]


class FakeStats:
    def __init__(self):
        self.calls = 0

    async def get_stats(self):
        self.calls += 1
        return DashboardStats()


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def services(db_url, tmp_path):
    return CallServices(
        engine=build_engine(db_url, poolclass=NullPool),
        ai=FakeAIClient(),
        telephony=FakeTelephony(),
        audio_dir=str(tmp_path / "audio"),
        stats_interval=3600,
        initial_stats_delay=3600,
        assistant_number=ASSISTANT_NUMBER,
    )


@pytest_asyncio.fixture
async def ready_services(services):
    await init_db(services.engine)
    yield services
    await services.lifecycle.drain()
    await services.engine.dispose()
