"""
Delivery communication hub API endpoints.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from uuid import UUID

from ujenzipro.controllers.communication_controller import CommunicationController
from ujenzipro.core.exceptions import AppException
from ujenzipro.db.gateway import DataGateway
from ujenzipro.deps.di_container import get_gateway
from ujenzipro.realtime.websocket import forward_until_disconnect, reject_websocket
from ujenzipro.schemas.communication import (
    CommunicationListResponse,
    CommunicationResponse,
    LocationShareCreate,
    MessageCreate,
    StatusUpdateCreate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{delivery_id}/communications", response_model=CommunicationListResponse)
async def list_messages(
    delivery_id: UUID,
    gateway: DataGateway = Depends(get_gateway),
) -> CommunicationListResponse:
    """List messages for a delivery, oldest first."""
    controller = CommunicationController(gateway)
    return await controller.list_messages(delivery_id)


@router.post(
    "/{delivery_id}/communications",
    response_model=CommunicationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    delivery_id: UUID,
    message: MessageCreate,
    gateway: DataGateway = Depends(get_gateway),
) -> CommunicationResponse:
    """Send a text message."""
    controller = CommunicationController(gateway)
    return await controller.send_message(delivery_id, message)


@router.post(
    "/{delivery_id}/status-updates",
    response_model=CommunicationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_status_update(
    delivery_id: UUID,
    update: StatusUpdateCreate,
    gateway: DataGateway = Depends(get_gateway),
) -> CommunicationResponse:
    """Post a status update to the hub."""
    controller = CommunicationController(gateway)
    return await controller.send_status_update(delivery_id, update)


@router.post(
    "/{delivery_id}/location-shares",
    response_model=CommunicationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def share_location(
    delivery_id: UUID,
    share: LocationShareCreate,
    gateway: DataGateway = Depends(get_gateway),
) -> CommunicationResponse:
    """Share a one-off location."""
    controller = CommunicationController(gateway)
    return await controller.share_location(delivery_id, share)


@router.websocket("/{delivery_id}/communications/live")
async def live_communications(
    websocket: WebSocket,
    delivery_id: UUID,
    gateway: DataGateway = Depends(get_gateway),
):
    """Push every new hub message of one delivery as JSON until the client disconnects."""
    controller = CommunicationController(gateway)
    queue: asyncio.Queue = asyncio.Queue()

    try:
        subscription = await controller.subscribe(
            delivery_id, lambda message: queue.put_nowait(message.model_dump(mode="json"))
        )
    except AppException as e:
        await reject_websocket(websocket, e)
        return

    try:
        with subscription:
            await websocket.accept()
            await forward_until_disconnect(websocket, queue)
    except WebSocketDisconnect:
        logger.debug("Communication hub client disconnected", extra={"delivery_id": str(delivery_id)})
