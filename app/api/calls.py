"""Call management endpoints"""

import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from typing import List
from app.api.dependencies import get_services
from app.models.call import CallRecord, CallStatus
from app.services.container import CallServices
from app.services.telephony import TelephonyError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/active-calls", response_model=List[dict])
async def get_active_calls(services: CallServices = Depends(get_services)):
    """Live calls, most recent first"""
    return [call.model_dump(mode="json", by_alias=True) for call in services.registry.list_active()]


@router.get("/calls/{call_sid}")
async def get_call(call_sid: str, services: CallServices = Depends(get_services)):
    """Get specific call details"""
    try:
        call = await services.store.get_call(call_sid)
    except Exception as e:
        logger.error(f"Error fetching call {call_sid}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch call")
    if not call:
        raise HTTPException(status_code=404, detail="Call not found")
    return CallRecord.model_validate(call).model_dump(mode="json", by_alias=True)


@router.post("/end-call/{call_sid}")
async def end_call(call_sid: str, services: CallServices = Depends(get_services)):
    """Hang up a call through Twilio and record it as ended"""
    try:
        await services.telephony.end_call(call_sid)
    except TelephonyError as e:
        logger.error(f"Error ending call: {e}")
        raise HTTPException(status_code=500, detail="Failed to end call")

    updated = await services.store.upsert_call(call_sid, status=CallStatus.ENDED, end_time=datetime.utcnow())
    if updated is None:
        raise HTTPException(status_code=500, detail="Failed to end call")

    return {"success": True, "message": "Call ended successfully"}
