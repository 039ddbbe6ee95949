"""
Delivery request controller.
"""

from typing import Optional
from uuid import UUID

from ujenzipro.controllers.base_controller import BaseController
from ujenzipro.db.gateway import DataGateway
from ujenzipro.models.status import DeliveryStatus
from ujenzipro.schemas.delivery import (
    DeliveryRequestCreate,
    DeliveryRequestListResponse,
    DeliveryRequestResponse,
    DeliveryResponseRequest,
)
from ujenzipro.services.delivery_service import DeliveryService


class DeliveryController(BaseController):
    """Controller for delivery request operations."""

    def __init__(self, gateway: DataGateway):
        self.delivery_service = DeliveryService(gateway)

    async def create_delivery(self, delivery_data: DeliveryRequestCreate) -> DeliveryRequestResponse:
        """Create a new delivery request."""
        return await self.delivery_service.create_delivery(delivery_data)

    async def get_delivery(self, delivery_id: UUID) -> DeliveryRequestResponse:
        """Get delivery request by ID."""
        return await self.delivery_service.require_delivery(delivery_id)

    async def list_active_deliveries(
        self,
        provider_id: Optional[UUID] = None,
        builder_id: Optional[UUID] = None,
    ) -> DeliveryRequestListResponse:
        """List active deliveries for a provider or a builder."""
        deliveries = await self.delivery_service.list_active_deliveries(
            provider_id=provider_id,
            builder_id=builder_id,
        )
        return DeliveryRequestListResponse(items=deliveries, total=len(deliveries))

    async def list_pending_requests(self, limit: int = 100) -> DeliveryRequestListResponse:
        """List requests waiting for a provider."""
        requests = await self.delivery_service.list_pending_requests(limit=limit)
        return DeliveryRequestListResponse(items=requests, total=len(requests))

    async def respond_to_request(
        self,
        delivery_id: UUID,
        response_data: DeliveryResponseRequest,
    ) -> DeliveryRequestResponse:
        """Accept or reject a pending request."""
        return await self.delivery_service.respond_to_request(delivery_id, response_data)

    async def update_status(self, delivery_id: UUID, status: DeliveryStatus) -> DeliveryRequestResponse:
        """Move a delivery to a new status."""
        return await self.delivery_service.update_status(delivery_id, status)

    async def cancel_delivery(self, delivery_id: UUID) -> DeliveryRequestResponse:
        """Cancel a delivery."""
        return await self.delivery_service.cancel_delivery(delivery_id)
