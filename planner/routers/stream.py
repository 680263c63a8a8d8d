"""
Realtime Router

Two ways to follow live changes:

    WS   /api/events/ws      - primary channel, every broadcast message as JSON text
    GET  /api/events/stream  - SSE mirror, one event per message named after its
                               channel (events:update / goodies:update)
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Request, WebSocket
from sse_starlette.sse import EventSourceResponse

from planner.config import get_settings
from planner.services.broadcast import QueueSubscriber

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["realtime"])


async def _pump(websocket: WebSocket, subscriber: QueueSubscriber) -> None:
    """Forward queued messages to the socket until the subscriber is closed."""
    while True:
        data = await subscriber.queue.get()
        if data is None:
            break
        await websocket.send_text(data)


async def _drain(websocket: WebSocket) -> None:
    """Read (and ignore) client frames until the client goes away."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws")
async def events_ws(websocket: WebSocket):
    hub = websocket.app.state.hub
    subscriber = QueueSubscriber(maxsize=get_settings().ws_queue_size)
    # Register before accepting so nothing published after the handshake is missed
    unregister = hub.register(subscriber)
    logger.info("WebSocket subscriber connected (%d total)", len(hub))

    tasks = set()
    try:
        await websocket.accept()
        tasks = {asyncio.create_task(_pump(websocket, subscriber)), asyncio.create_task(_drain(websocket))}
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.debug("WebSocket closed with error", exc_info=task.exception())
    finally:
        unregister()
        subscriber.close()
        for task in tasks:
            task.cancel()
        logger.info("WebSocket subscriber disconnected (%d total)", len(hub))


@router.get("/stream")
async def events_stream(request: Request, session_id: Optional[str] = None):
    """
    Server-Sent Events mirror of the broadcast channel.

    Events:
    - connected: sent once with the session id
    - events:update / goodies:update: one per broadcast message
    - keepalive: when nothing happened for a while
    """
    mirror = request.app.state.sse_mirror
    keepalive = get_settings().sse_keepalive_seconds
    if not session_id:
        session_id = str(uuid.uuid4())

    async def event_generator() -> AsyncGenerator[dict, None]:
        queue = mirror.connect(session_id)

        yield {
            "event": "connected",
            "data": json.dumps({"session_id": session_id}),
        }

        try:
            while mirror.is_connected(session_id):
                if await request.is_disconnected():
                    break

                try:
                    message = await asyncio.wait_for(queue.get(), timeout=keepalive)
                    yield {
                        "event": message["event"],
                        "data": json.dumps(
                            {"data": message["data"], "timestamp": message["timestamp"]}, default=str,
                        ),
                    }
                except asyncio.TimeoutError:
                    yield {
                        "event": "keepalive",
                        "data": json.dumps({"timestamp": datetime.now(timezone.utc).isoformat()}),
                    }
        finally:
            mirror.disconnect(session_id)

    return EventSourceResponse(event_generator())
