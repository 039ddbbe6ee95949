"""
Tracking reader - loads a delivery's recent history to seed a view.
"""

import logging
from typing import List, Optional, Sequence
from uuid import UUID

from ujenzipro.core.exceptions import AppException
from ujenzipro.schemas.tracking import TrackingSampleResponse
from ujenzipro.services.tracking_service import TrackingService
from ujenzipro.tracking.notifications import NotificationCenter

logger = logging.getLogger(__name__)


class TrackingReader:
    """Newest-first reads of the tracking log."""

    def __init__(self, tracking_service: TrackingService, notifier: NotificationCenter):
        self.tracking_service = tracking_service
        self.notifier = notifier

    async def list_samples(self, delivery_id: UUID, limit: Optional[int] = None) -> List[TrackingSampleResponse]:
        """Most recent samples, newest first; empty on failure."""
        try:
            return await self.tracking_service.list_samples(delivery_id, limit)
        except AppException as e:
            logger.error(f"Error fetching tracking data: {e.message}", extra={"delivery_id": str(delivery_id)})
            self.notifier.error("Error", "Failed to fetch tracking data")
            return []

    @staticmethod
    def latest(samples: Sequence[TrackingSampleResponse]) -> Optional[TrackingSampleResponse]:
        """The current status is the newest sample."""
        return samples[0] if samples else None
