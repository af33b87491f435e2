"""Twilio voice and status callback webhook"""

import json
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from app.api.dependencies import get_services
from app.models.events import parse_webhook
from app.services.container import CallServices

logger = logging.getLogger(__name__)
router = APIRouter()


async def _read_fields(request: Request) -> dict:
    """Twilio posts form-encoded parameters; JSON bodies are accepted too"""
    if "application/json" in request.headers.get("content-type", ""):
        try:
            body = await request.json()
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Invalid JSON body")
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Webhook body must be an object")
        return body
    form = await request.form()
    return dict(form)


@router.post("/webhook")
async def webhook(request: Request, services: CallServices = Depends(get_services)):
    """Main webhook endpoint - handles all Twilio call events"""
    fields = await _read_fields(request)
    logger.info(f"Webhook received: {fields}")

    try:
        event = parse_webhook(fields)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    first_contact = await services.lifecycle.dispatch(event)
    if first_contact:
        call = services.registry.get(event.call_sid)
        is_assistant = call.is_assistant_call if call else services.lifecycle.is_assistant_call(event.from_number)
        twiml = services.telephony.answer_call(is_assistant)
        return Response(content=twiml, media_type="text/xml")

    # Status, conference and recording callbacks just get acknowledged
    return PlainTextResponse("OK")
