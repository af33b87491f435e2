"""OpenAI transcription and note generation"""

import logging
from typing import Optional
from openai import AsyncOpenAI
from app.config import settings

logger = logging.getLogger(__name__)

NOTES_SYSTEM_PROMPT = (
    "You are an AI assistant that creates concise, structured meeting notes from phone call "
    "transcripts. Extract key points, action items, and important details."
)


class TranscriptionError(Exception):
    """Transcription or note generation did not produce a usable result"""


class AIClient:
    """Transcribes call audio with Whisper and summarizes transcripts with a chat model"""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self._client: Optional[AsyncOpenAI] = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def transcribe(self, audio: bytes, file_name: str, content_type: str = "audio/wav") -> str:
        """Transcribe a complete audio file"""
        logger.info(f"Sending {file_name} ({len(audio)} bytes) to OpenAI for transcription...")
        try:
            response = await self.client.audio.transcriptions.create(
                file=(file_name, audio, content_type),
                model=settings.TRANSCRIPTION_MODEL,
            )
        except Exception as e:
            raise TranscriptionError(f"Transcription failed for {file_name}: {e}") from e

        text = (response.text or "").strip()
        if not text:
            raise TranscriptionError(f"Empty transcript for {file_name}")
        logger.info(f"Transcription completed for {file_name}")
        return text

    async def summarize(self, transcript: str) -> str:
        """Generate structured notes from a transcript"""
        try:
            response = await self.client.chat.completions.create(
                model=settings.SUMMARY_MODEL,
                messages=[
                    {"role": "system", "content": NOTES_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": f"Please create structured notes from this phone call transcript:\n\n{transcript}",
                    },
                ],
                max_tokens=settings.SUMMARY_MAX_TOKENS,
                temperature=settings.SUMMARY_TEMPERATURE,
            )
        except Exception as e:
            raise TranscriptionError(f"Note generation failed: {e}") from e

        notes = response.choices[0].message.content if response.choices else None
        if not notes:
            raise TranscriptionError("Note generation returned no content")
        return notes
