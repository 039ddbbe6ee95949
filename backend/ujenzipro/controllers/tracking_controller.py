"""
Tracking controller.
"""

from typing import Optional
from uuid import UUID

from ujenzipro.controllers.base_controller import BaseController
from ujenzipro.db.gateway import DataGateway
from ujenzipro.realtime.change_feed import Subscription
from ujenzipro.schemas.tracking import (
    TrackingSampleCreate,
    TrackingSampleListResponse,
    TrackingSampleResponse,
    TrackingSummaryResponse,
)
from ujenzipro.services.tracking_service import SampleCallback, TrackingService


class TrackingController(BaseController):
    """Controller for delivery tracking operations."""

    def __init__(self, gateway: DataGateway):
        self.tracking_service = TrackingService(gateway)

    async def record_sample(
        self,
        delivery_id: UUID,
        sample_data: TrackingSampleCreate,
    ) -> TrackingSampleResponse:
        """Append a tracking sample."""
        return await self.tracking_service.record_sample(delivery_id, sample_data)

    async def list_samples(self, delivery_id: UUID, limit: Optional[int] = None) -> TrackingSampleListResponse:
        """Recent tracking samples, newest first."""
        await self.tracking_service.delivery_service.require_delivery(delivery_id)
        samples = await self.tracking_service.list_samples(delivery_id, limit)
        return TrackingSampleListResponse(items=samples, total=len(samples))

    async def get_summary(self, delivery_id: UUID) -> TrackingSummaryResponse:
        """Latest position summary."""
        return await self.tracking_service.get_summary(delivery_id)

    async def subscribe(self, delivery_id: UUID, on_insert: SampleCallback) -> Subscription:
        """Open a live channel for a delivery that exists."""
        await self.tracking_service.delivery_service.require_delivery(delivery_id)
        return self.tracking_service.subscribe(delivery_id, on_insert)
