"""
wattstream.api.routes.live — ``/ws`` balance channel
======================================================

Protocol::

    client → {"type": "subscribe", "userId": "..."}
    server → {"type": "balance_update", "balance": 12.5,
              "earned": 2.5, "timestamp": "..."}

A subscribe registers the socket with the app's broadcaster (replacing any
earlier channel for that user) and is answered with the current balance.
Malformed messages are logged and ignored; the socket stays open.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from wattstream.constants import LIVE_CHANNEL_PATH, MSG_SUBSCRIBE
from wattstream.services.broadcaster import BalanceBroadcaster
from wattstream.wire import SubscribeMessage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])


class WebSocketChannel:
    """Adapts a Starlette ``WebSocket`` to the broadcaster's channel protocol."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_json(self, data: dict[str, Any]) -> None:
        await self.websocket.send_json(data)


def parse_subscribe(raw: str) -> SubscribeMessage | None:
    """Return the subscribe request in *raw*, or None if it is not one."""
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring non-JSON channel message")
        return None
    if not isinstance(data, dict) or data.get("type") != MSG_SUBSCRIBE:
        logger.debug("Ignoring unexpected channel message: %r", data)
        return None
    try:
        return SubscribeMessage.model_validate(data)
    except ValidationError:
        logger.warning("Ignoring invalid subscribe message")
        return None


@router.websocket(LIVE_CHANNEL_PATH)
async def balance_channel(websocket: WebSocket):
    broadcaster: BalanceBroadcaster = websocket.app.state.broadcaster
    channel = WebSocketChannel(websocket)
    await websocket.accept()
    try:
        while True:
            message = parse_subscribe(await websocket.receive_text())
            if message is not None:
                await broadcaster.register(message.user_id, channel)
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.unregister(channel)
