"""
Tracking service - append-only writes and newest-first reads of the
delivery tracking log, plus the live change channel for one delivery.
"""

import logging
from typing import Awaitable, Callable, List, Optional, Union
from uuid import UUID

from ujenzipro.core.config import settings
from ujenzipro.core.exceptions import AppException
from ujenzipro.db.gateway import DELIVERY_TRACKING, DataGateway
from ujenzipro.realtime.change_feed import ChangeEvent, ChangePayload, Subscription
from ujenzipro.schemas.tracking import (
    TrackingSampleCreate,
    TrackingSampleResponse,
    TrackingSummaryResponse,
)
from ujenzipro.services.base_service import BaseService
from ujenzipro.services.delivery_service import DeliveryService
from ujenzipro.utils.geo import haversine_km, map_url

logger = logging.getLogger(__name__)

SampleCallback = Callable[[TrackingSampleResponse], Union[None, Awaitable[None]]]


class TrackingService(BaseService):
    """Service for delivery tracking samples."""

    def __init__(self, gateway: DataGateway):
        super().__init__(gateway)
        self.delivery_service = DeliveryService(gateway)

    async def record_sample(
        self,
        delivery_id: UUID,
        sample_data: TrackingSampleCreate,
    ) -> TrackingSampleResponse:
        """
        Append one sample to the delivery's tracking log.

        The id and created_at of the row are assigned by the gateway.

        Raises:
            NotFoundError: delivery does not exist
            AppException: provider is not the one assigned to the delivery
        """
        delivery = await self.delivery_service.require_delivery(delivery_id)
        if delivery.provider_id != sample_data.provider_id:
            raise AppException(
                "Provider is not assigned to this delivery",
                status_code=403,
                details={"delivery_id": str(delivery_id), "provider_id": str(sample_data.provider_id)},
            )

        row = sample_data.model_dump()
        row["delivery_request_id"] = delivery_id
        created = await self.gateway.insert(DELIVERY_TRACKING, row)
        logger.debug(
            "Tracking sample recorded",
            extra={"delivery_id": str(delivery_id), "status": sample_data.status.value},
        )
        return TrackingSampleResponse.model_validate(created)

    async def list_samples(
        self,
        delivery_id: UUID,
        limit: Optional[int] = None,
    ) -> List[TrackingSampleResponse]:
        """Most recent samples for a delivery, newest first."""
        if limit is None:
            limit = settings.TRACKING_HISTORY_LIMIT
        limit = max(1, min(limit, settings.TRACKING_HISTORY_MAX_LIMIT))

        rows = await self.gateway.select(
            DELIVERY_TRACKING,
            {"delivery_request_id": delivery_id},
            order_by="created_at",
            descending=True,
            limit=limit,
        )
        return [TrackingSampleResponse.model_validate(row) for row in rows]

    async def get_summary(self, delivery_id: UUID) -> TrackingSummaryResponse:
        """Latest sample with distance to the drop-off point and a map link."""
        delivery = await self.delivery_service.require_delivery(delivery_id)
        samples = await self.list_samples(delivery_id, limit=1)
        latest = samples[0] if samples else None

        summary = TrackingSummaryResponse(
            delivery_request_id=delivery_id,
            delivery_status=delivery.status.value,
            latest=latest,
        )
        if latest is not None:
            summary.map_url = map_url(latest.latitude, latest.longitude)
            if delivery.delivery_latitude is not None and delivery.delivery_longitude is not None:
                summary.distance_to_destination_km = round(
                    haversine_km(
                        latest.latitude,
                        latest.longitude,
                        delivery.delivery_latitude,
                        delivery.delivery_longitude,
                    ),
                    3,
                )
        return summary

    def subscribe(self, delivery_id: UUID, on_insert: SampleCallback) -> Subscription:
        """
        Open a channel that receives every sample inserted for one delivery.
        The caller owns the returned handle and must close it.
        """
        def deliver(payload: ChangePayload):
            return on_insert(TrackingSampleResponse.model_validate(payload.new))

        return self.gateway.subscribe(
            DELIVERY_TRACKING,
            ChangeEvent.INSERT,
            {"delivery_request_id": delivery_id},
            deliver,
        )
