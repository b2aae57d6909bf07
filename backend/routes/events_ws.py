from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from services.event_hub import JOBS_CHANNEL, RECORDER_CHANNEL, event_hub

router = APIRouter(tags=["events"])
logger = logging.getLogger(__name__)

CHANNELS = (JOBS_CHANNEL, RECORDER_CHANNEL)


@router.websocket("/ws/events/{channel}")
async def ws_events(websocket: WebSocket, channel: str) -> None:
    """
    Stream app events to the client.

    jobs:     {"type": "job_completed", "job_id", "title", "body", "result_file", "stroke_counts"}
    recorder: {"type": "start_recording" | "stop_recording", "source", "file"}
    """
    await websocket.accept()
    if channel not in CHANNELS:
        await websocket.close(code=1008)
        return
    q = await event_hub.subscribe(channel)
    logger.info("[events_ws] Subscribed channel=%s", channel)
    try:
        while True:
            payload: dict[str, Any] = await q.get()
            await websocket.send_json(payload)
    except WebSocketDisconnect:
        return
    finally:
        await event_hub.unsubscribe(channel, q)
