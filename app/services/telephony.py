"""Twilio client: ending calls, fetching recordings, answering with TwiML"""

import aiohttp
import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse
from twilio.rest import Client
from twilio.twiml.voice_response import Start, VoiceResponse
from app.config import settings

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com"


class TelephonyError(Exception):
    """A Twilio request failed"""


class TelephonyClient:
    """Thin async wrapper over the synchronous Twilio SDK"""

    def __init__(self, account_sid: Optional[str] = None, auth_token: Optional[str] = None):
        self.account_sid = account_sid if account_sid is not None else settings.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token if auth_token is not None else settings.TWILIO_AUTH_TOKEN
        self._client: Optional[Client] = None

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    async def _run(self, func):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, func)

    async def end_call(self, call_sid: str) -> str:
        """Ask Twilio to hang up a call, returns the status Twilio reports"""
        try:
            call = await self._run(lambda: self.client.calls(call_sid).update(status="completed"))
        except Exception as e:
            raise TelephonyError(f"Failed to end call {call_sid}: {e}") from e
        logger.info(f"Requested end of call {call_sid}")
        return call.status

    async def fetch_recording(self, recording_sid: str) -> bytes:
        """Download a recording as mp3"""
        try:
            recording = await self._run(lambda: self.client.recordings(recording_sid).fetch())
        except Exception as e:
            raise TelephonyError(f"Failed to fetch recording {recording_sid}: {e}") from e

        if recording.status == "processing":
            logger.info(f"Recording {recording_sid} still processing, waiting...")
            await asyncio.sleep(settings.RECORDING_READY_DELAY)

        download_url = f"{TWILIO_API_BASE}{recording.uri.replace('.json', '.mp3')}"
        auth = aiohttp.BasicAuth(self.account_sid, self.auth_token)
        async with aiohttp.ClientSession(auth=auth) as session:
            async with session.get(download_url) as response:
                if response.status != 200:
                    raise TelephonyError(
                        f"Failed to download recording {recording_sid}: {response.status} {response.reason}"
                    )
                audio = await response.read()
        logger.info(f"Downloaded recording {recording_sid} ({len(audio)} bytes)")
        return audio

    def answer_call(self, is_assistant_call: bool) -> str:
        """TwiML for a first-contact call"""
        response = VoiceResponse()
        if is_assistant_call:
            response.say(
                "Aurora AI Assistant connected. Audio streaming started.",
                voice="alice",
                language="en-US",
            )
            start = Start()
            start.stream(url=self.stream_url(), track="both_tracks")
            response.append(start)
            response.pause(length=3600)
        else:
            response.say("Hello, this call will be recorded for quality purposes.")
            response.pause(length=300)
        return str(response)

    def stream_url(self) -> str:
        base = settings.WEBHOOK_BASE_URL
        host = urlparse(base).netloc or base
        return f"wss://{host}/audio-stream"
