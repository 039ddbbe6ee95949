"""
WebSocket forwarding for live change channels.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import WebSocket, status

from ujenzipro.core.exceptions import AppException

logger = logging.getLogger(__name__)


async def reject_websocket(websocket: WebSocket, exc: AppException) -> None:
    """Accept only to send the error envelope, then close."""
    await websocket.accept()
    await websocket.send_json(exc.envelope(websocket.url.path))
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION)


async def forward_until_disconnect(websocket: WebSocket, queue: "asyncio.Queue[Dict[str, Any]]") -> None:
    """
    Send queued JSON payloads to the client until it disconnects.

    The socket is read while waiting for payloads, so a client that goes
    away is noticed even when nothing is being sent. Incoming client
    messages are otherwise ignored.
    """
    receiver: asyncio.Future = asyncio.ensure_future(websocket.receive())
    getter: Optional[asyncio.Future] = None
    try:
        while True:
            if getter is None:
                getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({receiver, getter}, return_when=asyncio.FIRST_COMPLETED)

            if getter in done:
                payload = getter.result()
                getter = None
                await websocket.send_json(payload)

            if receiver in done:
                message = receiver.result()
                if message["type"] == "websocket.disconnect":
                    logger.debug("WebSocket client disconnected", extra={"code": message.get("code")})
                    return
                receiver = asyncio.ensure_future(websocket.receive())
    finally:
        for pending in (receiver, getter):
            if pending is not None and not pending.done():
                pending.cancel()
