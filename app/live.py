"""WebSocket push channel for live sensor, alert and report events."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.dependencies import get_channel
from services.broadcast import BroadcastChannel, Subscriber

logger = logging.getLogger(__name__)

router = APIRouter()


async def _forward_events(websocket: WebSocket, subscriber: Subscriber) -> None:
    while True:
        event = await subscriber.next_event()
        await websocket.send_json(event.as_message())


@router.websocket("/ws")
async def live_events(
    websocket: WebSocket,
    channel: BroadcastChannel = Depends(get_channel),
) -> None:
    # Subscribe before completing the handshake so nothing published after
    # the client sees the connection open is missed.
    subscriber = channel.subscribe()
    sender: Optional[asyncio.Task[None]] = None
    try:
        await websocket.accept()
        sender = asyncio.create_task(_forward_events(websocket, subscriber))
        # Clients never need to send anything; inbound frames of either kind
        # are discarded and reading only detects disconnects.
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug(
                    "Live listener disconnected", extra={"reason": message.get("code")}
                )
                break
    except WebSocketDisconnect as exc:
        logger.debug("Live listener disconnected", extra={"reason": exc.code})
    finally:
        channel.unsubscribe(subscriber)
        if sender is not None:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except (WebSocketDisconnect, RuntimeError) as exc:
                logger.debug("Live delivery stopped", extra={"reason": str(exc)})
