"""
Delivery tracking API endpoints, including the live WebSocket feed.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from uuid import UUID

from ujenzipro.controllers.tracking_controller import TrackingController
from ujenzipro.core.exceptions import AppException
from ujenzipro.db.gateway import DataGateway
from ujenzipro.deps.di_container import get_gateway
from ujenzipro.realtime.websocket import forward_until_disconnect, reject_websocket
from ujenzipro.schemas.tracking import (
    TrackingSampleCreate,
    TrackingSampleListResponse,
    TrackingSampleResponse,
    TrackingSummaryResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/{delivery_id}/tracking",
    response_model=TrackingSampleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_sample(
    delivery_id: UUID,
    sample_data: TrackingSampleCreate,
    gateway: DataGateway = Depends(get_gateway),
) -> TrackingSampleResponse:
    """Append a tracking sample; id and created_at are assigned by the server."""
    controller = TrackingController(gateway)
    return await controller.record_sample(delivery_id, sample_data)


@router.get("/{delivery_id}/tracking", response_model=TrackingSampleListResponse)
async def list_samples(
    delivery_id: UUID,
    limit: int = Query(None, ge=1),
    gateway: DataGateway = Depends(get_gateway),
) -> TrackingSampleListResponse:
    """Most recent tracking samples, newest first."""
    controller = TrackingController(gateway)
    return await controller.list_samples(delivery_id, limit)


@router.get("/{delivery_id}/tracking/summary", response_model=TrackingSummaryResponse)
async def get_summary(
    delivery_id: UUID,
    gateway: DataGateway = Depends(get_gateway),
) -> TrackingSummaryResponse:
    """Latest position, distance to the drop-off point and a map link."""
    controller = TrackingController(gateway)
    return await controller.get_summary(delivery_id)


@router.websocket("/{delivery_id}/tracking/live")
async def live_tracking(
    websocket: WebSocket,
    delivery_id: UUID,
    gateway: DataGateway = Depends(get_gateway),
):
    """Push every new sample of one delivery as JSON until the client disconnects."""
    controller = TrackingController(gateway)
    queue: asyncio.Queue = asyncio.Queue()

    try:
        subscription = await controller.subscribe(
            delivery_id, lambda sample: queue.put_nowait(sample.model_dump(mode="json"))
        )
    except AppException as e:
        await reject_websocket(websocket, e)
        return

    # the channel is open before the client sees the accept
    try:
        with subscription:
            await websocket.accept()
            await forward_until_disconnect(websocket, queue)
    except WebSocketDisconnect:
        logger.debug("Live tracking client disconnected", extra={"delivery_id": str(delivery_id)})
