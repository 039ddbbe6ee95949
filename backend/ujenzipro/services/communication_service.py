"""
Communication hub service - messages, status updates and shared
locations exchanged by the parties of one delivery.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Union
from uuid import UUID

from ujenzipro.db.gateway import DELIVERY_COMMUNICATIONS, DataGateway
from ujenzipro.models.communication import MessageType
from ujenzipro.realtime.change_feed import ChangeEvent, ChangePayload, Subscription
from ujenzipro.schemas.communication import (
    CommunicationResponse,
    LocationShareCreate,
    MessageCreate,
    Sender,
    StatusUpdateCreate,
)
from ujenzipro.services.base_service import BaseService
from ujenzipro.services.delivery_service import DeliveryService

logger = logging.getLogger(__name__)

MessageCallback = Callable[[CommunicationResponse], Union[None, Awaitable[None]]]


class CommunicationService(BaseService):
    """Service for delivery communication operations."""

    def __init__(self, gateway: DataGateway):
        super().__init__(gateway)
        self.delivery_service = DeliveryService(gateway)

    async def _append(
        self,
        delivery_id: UUID,
        sender: Sender,
        message_type: MessageType,
        content: str,
        payload: Dict[str, Any],
    ) -> CommunicationResponse:
        await self.delivery_service.require_delivery(delivery_id)
        created = await self.gateway.insert(
            DELIVERY_COMMUNICATIONS,
            {
                "delivery_request_id": delivery_id,
                "sender_type": sender.sender_type,
                "sender_id": sender.sender_id,
                "sender_name": sender.sender_name,
                "message_type": message_type,
                "content": content,
                "payload": payload,
            },
        )
        logger.debug(
            "Communication appended",
            extra={"delivery_id": str(delivery_id), "message_type": message_type.value},
        )
        return CommunicationResponse.model_validate(created)

    async def send_message(self, delivery_id: UUID, message: MessageCreate) -> CommunicationResponse:
        """Send a free-text message."""
        return await self._append(delivery_id, message, MessageType.TEXT, message.content.strip(), {})

    async def send_status_update(self, delivery_id: UUID, update: StatusUpdateCreate) -> CommunicationResponse:
        """
        Post a status update to the hub.

        Stored as a `status_update` message whose payload carries the status,
        the optional location and the notes.
        """
        payload = {
            "status": update.status.value,
            "latitude": update.latitude,
            "longitude": update.longitude,
            "notes": update.notes,
        }
        return await self._append(
            delivery_id,
            update,
            MessageType.STATUS_UPDATE,
            f"Status updated to: {update.status.value}",
            payload,
        )

    async def share_location(self, delivery_id: UUID, share: LocationShareCreate) -> CommunicationResponse:
        """Share a one-off position with the other parties."""
        return await self._append(
            delivery_id,
            share,
            MessageType.LOCATION_UPDATE,
            f"Location shared: {share.latitude:.5f}, {share.longitude:.5f}",
            {"latitude": share.latitude, "longitude": share.longitude},
        )

    async def list_messages(self, delivery_id: UUID) -> List[CommunicationResponse]:
        """All messages for a delivery, oldest first."""
        rows = await self.gateway.select(
            DELIVERY_COMMUNICATIONS,
            {"delivery_request_id": delivery_id},
            order_by="created_at",
            descending=False,
        )
        return [CommunicationResponse.model_validate(row) for row in rows]

    def subscribe(self, delivery_id: UUID, on_message: MessageCallback) -> Subscription:
        """Open a channel receiving new messages for one delivery."""
        def deliver(payload: ChangePayload):
            return on_message(CommunicationResponse.model_validate(payload.new))

        return self.gateway.subscribe(
            DELIVERY_COMMUNICATIONS,
            ChangeEvent.INSERT,
            {"delivery_request_id": delivery_id},
            deliver,
        )
