"""WebSocket endpoint that streams entity events to connected UIs."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from aiohttp import WSMsgType, web

from modern.notifications.broadcaster import EventBroadcaster

logger = logging.getLogger(__name__)


class WebSocketSubscriber:
    """Adapts an open WebSocket to the EventSubscriber protocol."""

    def __init__(self, ws: web.WebSocketResponse) -> None:
        self._ws = ws
        self._name = f"ws-{uuid.uuid4().hex[:8]}"

    @property
    def name(self) -> str:
        return self._name

    async def deliver(self, event: dict[str, Any]) -> bool:
        if self._ws.closed:
            return False
        await self._ws.send_json(event)
        return True


async def handle_websocket(request: web.Request) -> web.WebSocketResponse:
    """GET /ws — subscribe for events; inbound JSON frames are acknowledged."""
    from modern.server.app import BROADCASTER

    broadcaster: EventBroadcaster = request.app[BROADCASTER]
    ws = web.WebSocketResponse(heartbeat=30)
    await ws.prepare(request)

    subscriber = WebSocketSubscriber(ws)
    broadcaster.subscribe(subscriber)
    logger.info("WebSocket client connected: %s", subscriber.name)
    try:
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                try:
                    data = json.loads(msg.data)
                except ValueError:
                    logger.warning("Ignoring non-JSON frame from %s", subscriber.name)
                    continue
                await ws.send_json({"type": "ack", "data": data})
            elif msg.type == WSMsgType.ERROR:
                logger.warning("WebSocket %s closed with error: %s", subscriber.name, ws.exception())
    finally:
        broadcaster.unsubscribe(subscriber.name)
        logger.info("WebSocket client disconnected: %s", subscriber.name)
    return ws
