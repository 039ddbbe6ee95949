"""
Tracking writer - turns one observed position into one appended sample.
"""

import logging
from typing import Optional, Union
from uuid import UUID

from pydantic import ValidationError

from ujenzipro.core.exceptions import AppException
from ujenzipro.models.status import TrackingStatus
from ujenzipro.schemas.tracking import TrackingSampleCreate, TrackingSampleResponse
from ujenzipro.services.tracking_service import TrackingService
from ujenzipro.tracking.geolocation import Position
from ujenzipro.tracking.notifications import NotificationCenter

logger = logging.getLogger(__name__)


class TrackingWriter:
    """
    Appends samples to the tracking log.

    A failed write is reported to the notifier and the sample is dropped;
    nothing is queued or retried.
    """

    def __init__(self, tracking_service: TrackingService, notifier: NotificationCenter):
        self.tracking_service = tracking_service
        self.notifier = notifier

    async def record_sample(
        self,
        delivery_id: UUID,
        provider_id: UUID,
        position: Position,
        status: Union[TrackingStatus, str],
        notes: Optional[str] = None,
    ) -> Optional[TrackingSampleResponse]:
        """
        Insert one sample.

        Returns:
            The stored sample, or None if it was dropped

        Raises:
            ValueError: `status` is not a TrackingStatus value
        """
        status = TrackingStatus(status)
        try:
            sample = TrackingSampleCreate(
                provider_id=provider_id,
                latitude=position.latitude,
                longitude=position.longitude,
                heading=position.heading,
                speed=position.speed,
                accuracy=position.accuracy,
                status=status,
                notes=notes or None,
            )
        except ValidationError as e:
            logger.warning(
                "Discarding malformed position",
                extra={"delivery_id": str(delivery_id), "errors": e.errors(include_url=False)},
            )
            self.notifier.error("Location Error", "Received an invalid location reading; it was not shared")
            return None

        try:
            return await self.tracking_service.record_sample(delivery_id, sample)
        except AppException as e:
            logger.error(
                f"Error updating location: {e.message}",
                extra={"delivery_id": str(delivery_id), "status_code": e.status_code},
            )
            self.notifier.error("Error", "Failed to update location")
            return None
