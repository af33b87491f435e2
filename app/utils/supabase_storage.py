"""Supabase Storage utility for mirroring finalized call audio"""

import logging
import asyncio
from typing import Optional
from supabase import create_client, Client
from app.config import settings

logger = logging.getLogger(__name__)

# Global Supabase client instance
_supabase_client: Optional[Client] = None


def is_configured() -> bool:
    return bool(settings.SUPABASE_URL and settings.SUPABASE_KEY)


def get_supabase_client() -> Optional[Client]:
    """Initialize and return Supabase client"""
    global _supabase_client

    if _supabase_client is not None:
        return _supabase_client

    if not is_configured():
        return None

    try:
        _supabase_client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
        logger.info("Supabase client initialized successfully")
        return _supabase_client
    except Exception as e:
        logger.error(f"Failed to initialize Supabase client: {e}")
        return None


async def upload_audio_file(
    path: str,
    data: bytes,
    bucket: Optional[str] = None,
    content_type: str = "audio/wav"
) -> Optional[str]:
    """
    Upload an audio file to Supabase Storage and return its public URL

    Args:
        path: Storage path (e.g., "CA123/call_CA123_2024-01-01T00-00-00-000000.wav")
        data: File contents
        bucket: Storage bucket name, defaults to SUPABASE_STORAGE_BUCKET
        content_type: MIME type

    Returns:
        Public URL to the uploaded file, or None if storage is not configured
        or the upload failed
    """
    client = get_supabase_client()
    if not client:
        return None

    bucket = bucket or settings.SUPABASE_STORAGE_BUCKET

    try:
        # Supabase client is synchronous
        loop = asyncio.get_event_loop()
        storage_api = client.storage.from_(bucket)

        await loop.run_in_executor(
            None,
            lambda: storage_api.upload(
                path=path,
                file=data,
                file_options={"content-type": content_type, "upsert": "true"}
            )
        )
        public_url = await loop.run_in_executor(None, lambda: storage_api.get_public_url(path))
        logger.debug(f"Uploaded audio to {bucket}/{path}: {public_url}")
        return public_url
    except Exception as e:
        logger.error(f"Error uploading audio to Supabase Storage ({bucket}/{path}): {e}", exc_info=True)
        return None
