"""Call notes and recorded audio endpoints"""

import logging
from pathlib import Path
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse, Response
from app.api.dependencies import get_services
from app.models.note import AudioFile, CallNote
from app.services.container import CallServices

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/call-notes/{call_sid}")
async def get_call_notes(call_sid: str, services: CallServices = Depends(get_services)):
    """Latest notes for a call"""
    try:
        note = await services.store.get_note(call_sid)
    except Exception as e:
        logger.error(f"Error fetching call notes: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch call notes")
    if not note:
        raise HTTPException(status_code=404, detail="Notes not found for this call")
    return CallNote.model_validate(note).model_dump(mode="json", by_alias=True)


@router.get("/all-notes")
async def get_all_notes(services: CallServices = Depends(get_services)):
    """All notes, newest first"""
    try:
        notes = await services.store.list_notes()
    except Exception as e:
        logger.error(f"Error fetching all notes: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch notes")
    return [CallNote.model_validate(note).model_dump(mode="json", by_alias=True) for note in notes]


@router.api_route("/download-audio/{call_sid}", methods=["GET", "HEAD"])
async def download_audio(call_sid: str, request: Request, services: CallServices = Depends(get_services)):
    """Stream the WAV file for a call; HEAD only checks it exists"""
    head_only = request.method == "HEAD"
    try:
        note = await services.store.get_audio_note(call_sid)
    except Exception as e:
        logger.error(f"Error looking up audio file for call {call_sid}: {e}")
        if head_only:
            return Response(status_code=500)
        raise HTTPException(status_code=500, detail="Failed to download audio file")

    if not note:
        if head_only:
            return Response(status_code=404)
        raise HTTPException(status_code=404, detail="Audio file not found for this call")

    audio_path = Path(note.audio_file_path)
    if not audio_path.is_file():
        if head_only:
            return Response(status_code=404)
        raise HTTPException(status_code=404, detail="Audio file not found on server")

    if head_only:
        return Response(status_code=200)

    logger.info(f"Audio file downloaded for call {call_sid}: {audio_path}")
    return FileResponse(
        audio_path,
        media_type="audio/wav",
        filename=note.audio_file_name or f"call_{call_sid}.wav",
    )


@router.get("/audio-files")
async def list_audio_files(services: CallServices = Depends(get_services)):
    """Calls whose audio file is still on disk"""
    try:
        notes = await services.store.list_notes(with_audio=True)
    except Exception as e:
        logger.error(f"Error fetching audio files list: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch audio files list")

    available = []
    for note in notes:
        if Path(note.audio_file_path).is_file():
            available.append(AudioFile(
                call_sid=note.call_sid,
                file_name=note.audio_file_name,
                file_size=note.audio_size,
                created_at=note.created_at,
                has_transcript=bool(note.transcript),
                download_url=f"/download-audio/{note.call_sid}",
            ).model_dump(mode="json", by_alias=True))
    return available
