"""
Communication hub controller.
"""

from uuid import UUID

from ujenzipro.controllers.base_controller import BaseController
from ujenzipro.db.gateway import DataGateway
from ujenzipro.realtime.change_feed import Subscription
from ujenzipro.schemas.communication import (
    CommunicationListResponse,
    CommunicationResponse,
    LocationShareCreate,
    MessageCreate,
    StatusUpdateCreate,
)
from ujenzipro.services.communication_service import CommunicationService, MessageCallback


class CommunicationController(BaseController):
    """Controller for delivery communication operations."""

    def __init__(self, gateway: DataGateway):
        self.communication_service = CommunicationService(gateway)

    async def list_messages(self, delivery_id: UUID) -> CommunicationListResponse:
        """Messages for a delivery, oldest first."""
        await self.communication_service.delivery_service.require_delivery(delivery_id)
        messages = await self.communication_service.list_messages(delivery_id)
        return CommunicationListResponse(items=messages, total=len(messages))

    async def send_message(self, delivery_id: UUID, message: MessageCreate) -> CommunicationResponse:
        """Send a text message."""
        return await self.communication_service.send_message(delivery_id, message)

    async def send_status_update(self, delivery_id: UUID, update: StatusUpdateCreate) -> CommunicationResponse:
        """Post a status update."""
        return await self.communication_service.send_status_update(delivery_id, update)

    async def share_location(self, delivery_id: UUID, share: LocationShareCreate) -> CommunicationResponse:
        """Share a location."""
        return await self.communication_service.share_location(delivery_id, share)

    async def subscribe(self, delivery_id: UUID, on_message: MessageCallback) -> Subscription:
        """Open a live channel for a delivery that exists."""
        await self.communication_service.delivery_service.require_delivery(delivery_id)
        return self.communication_service.subscribe(delivery_id, on_message)
