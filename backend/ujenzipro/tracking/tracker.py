"""
Provider-side live delivery tracker.

Lists the provider's active deliveries, runs the location sampler for the
selected one and moves its status forward.
"""

import logging
from typing import List, Optional, Union
from uuid import UUID

from ujenzipro.core.exceptions import AppException, InvalidStatusTransitionError
from ujenzipro.models.status import (
    DeliveryStatus,
    TrackingStatus,
    TRACKING_STATUS_LABELS,
    is_annotation,
    validate_tracking_progress,
)
from ujenzipro.schemas.delivery import DeliveryRequestResponse
from ujenzipro.services.delivery_service import DeliveryService
from ujenzipro.tracking.notifications import NotificationCenter
from ujenzipro.tracking.sampler import GeolocationSampler

logger = logging.getLogger(__name__)


class LiveDeliveryTracker:
    """View state for a provider tracking their deliveries."""

    def __init__(
        self,
        provider_id: UUID,
        delivery_service: DeliveryService,
        sampler: GeolocationSampler,
        notifier: NotificationCenter,
    ):
        self.provider_id = provider_id
        self.delivery_service = delivery_service
        self.sampler = sampler
        self.notifier = notifier

        self.deliveries: List[DeliveryRequestResponse] = []
        self.selected_delivery_id: Optional[UUID] = None
        # primary status; annotations do not replace it
        self.status = TrackingStatus.EN_ROUTE

    @property
    def is_tracking(self) -> bool:
        return self.sampler.is_tracking

    async def refresh_deliveries(self) -> List[DeliveryRequestResponse]:
        try:
            self.deliveries = await self.delivery_service.list_active_deliveries(provider_id=self.provider_id)
        except AppException as e:
            logger.error(f"Error fetching deliveries: {e.message}", extra={"provider_id": str(self.provider_id)})
            self.notifier.error("Error", "Failed to fetch deliveries")
        return self.deliveries

    async def select_delivery(self, delivery_id: Optional[UUID]) -> None:
        """Select another delivery, stopping any running watch first."""
        if delivery_id == self.selected_delivery_id:
            return
        if self.sampler.is_tracking:
            await self.stop_tracking()
        self.selected_delivery_id = delivery_id
        self._reset_status()

    async def start_tracking(self) -> bool:
        if self.selected_delivery_id is None:
            self.notifier.error("No Delivery Selected", "Please select a delivery to track")
            return False
        started = await self.sampler.start_tracking(self.selected_delivery_id)
        if started:
            self.notifier.notify("Tracking Started", "Your location is now being shared with the builder")
        return started

    async def stop_tracking(self) -> None:
        if not self.sampler.is_tracking:
            return
        await self.sampler.stop_tracking()
        self.notifier.notify("Tracking Stopped", "Location sharing has been disabled")

    def set_notes(self, notes: Optional[str]) -> None:
        """Notes carried into subsequent samples."""
        self.sampler.notes = notes or None

    async def change_status(self, status: Union[TrackingStatus, str]) -> bool:
        """
        Move the selected delivery's tracking status.

        Primary statuses only move forward. `delivered` completes the
        delivery, then writes a final sample at the current position and
        clears the selection. If the delivery update fails nothing local
        changes and tracking keeps running.

        Returns:
            True if the status was applied
        """
        status = TrackingStatus(status)
        delivery_id = self.selected_delivery_id
        if delivery_id is None:
            self.notifier.error("No Delivery Selected", "Please select a delivery first")
            return False

        try:
            validate_tracking_progress(self.status, status)
        except InvalidStatusTransitionError as e:
            self.notifier.error("Invalid Status", e.message)
            return False

        # local state only follows a delivery update that went through
        try:
            if status is TrackingStatus.DELIVERED:
                await self.delivery_service.update_status(delivery_id, DeliveryStatus.DELIVERED)
            else:
                await self.delivery_service.apply_tracking_status(delivery_id, status)
        except AppException as e:
            logger.error(f"Error updating status: {e.message}", extra={"delivery_id": str(delivery_id)})
            self.notifier.error("Error", "Failed to update delivery status")
            return False

        self.sampler.status = status
        if not is_annotation(status):
            self.status = status

        if status is TrackingStatus.DELIVERED:
            await self.sampler.stop_tracking()
            self.notifier.notify("Delivery Completed", "The delivery has been marked as delivered")
            self.selected_delivery_id = None
            self._reset_status()
            await self.refresh_deliveries()
        else:
            self.notifier.notify("Status Updated", f"Status changed to {TRACKING_STATUS_LABELS[status]}")
        return True

    def _reset_status(self) -> None:
        self.status = TrackingStatus.EN_ROUTE
        self.sampler.status = TrackingStatus.EN_ROUTE
        self.sampler.notes = None
