"""WebSocket endpoints for dashboards and Twilio media streams"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import asyncio
import json
import logging
from typing import Optional
from app.models.events import StreamClosed, parse_stream_message
from app.services.container import CallServices

logger = logging.getLogger(__name__)
router = APIRouter()

DASHBOARD_PREFIXES = ("/ws", "/dashboard")


def is_dashboard_path(path: str) -> bool:
    return path.startswith(DASHBOARD_PREFIXES)


@router.websocket("/{path:path}")
async def websocket_entry(websocket: WebSocket, path: str):
    """Route a socket by its request path: dashboards vs. audio streams"""
    services: CallServices = websocket.app.state.services
    client = websocket.client.host if websocket.client else "unknown"
    if is_dashboard_path(websocket.url.path):
        logger.info(f"Dashboard WebSocket connection from {client}")
        await handle_dashboard_connection(websocket, services)
    else:
        logger.info(f"Audio stream WebSocket connection from {client}")
        await handle_audio_stream_connection(websocket, services)


async def receive_text_frame(websocket: WebSocket) -> Optional[str]:
    """
    Next text frame from the socket, or None for a binary frame.

    Raises:
        WebSocketDisconnect: when the client went away
    """
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(code=message.get("code", 1000))
    text = message.get("text")
    if text is None:
        logger.warning(f"Dropping binary WebSocket frame ({len(message.get('bytes') or b'')} bytes)")
    return text


async def handle_dashboard_connection(websocket: WebSocket, services: CallServices):
    broadcaster = services.broadcaster
    await websocket.accept()
    broadcaster.subscribe(websocket)
    initial_stats = asyncio.create_task(broadcaster.send_initial_stats(websocket))

    try:
        while True:
            data = await receive_text_frame(websocket)
            if data is None:
                continue
            await broadcaster.handle_message(websocket, data)
    except WebSocketDisconnect as e:
        logger.info(f"Dashboard WebSocket connection closed: code={e.code}")
    except Exception as e:
        logger.error(f"Dashboard WebSocket error: {e}")
    finally:
        initial_stats.cancel()
        broadcaster.unsubscribe(websocket)


async def handle_audio_stream_connection(websocket: WebSocket, services: CallServices):
    lifecycle = services.lifecycle
    await websocket.accept()
    call_sid: Optional[str] = None

    try:
        while True:
            data = await receive_text_frame(websocket)
            if data is None:
                continue
            try:
                message = json.loads(data)
                if not isinstance(message, dict):
                    raise ValueError("stream message is not an object")
                event = parse_stream_message(message, call_sid)
            except ValueError as e:
                logger.warning(f"Dropping audio stream message: {e}")
                continue

            if message.get("event") == "connected":
                logger.info("Audio stream connected")
            if event is None:
                continue
            if event.kind == "stream_started":
                call_sid = event.call_sid
            await lifecycle.dispatch(event)
    except WebSocketDisconnect:
        logger.info(f"Audio stream WebSocket connection closed (call: {call_sid})")
    except Exception as e:
        logger.error(f"Audio stream WebSocket error for call {call_sid}: {e}")
    finally:
        if call_sid:
            await lifecycle.dispatch(StreamClosed(call_sid=call_sid))
