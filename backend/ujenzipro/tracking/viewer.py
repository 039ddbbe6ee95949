"""
Builder-side live tracking view.

Shows the builder's active deliveries and, for the selected one, its
tracking history merged with samples pushed by the change feed.
"""

import logging
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from ujenzipro.core.config import settings
from ujenzipro.core.exceptions import AppException
from ujenzipro.models.status import TRACKING_STATUS_LABELS
from ujenzipro.schemas.delivery import DeliveryRequestResponse
from ujenzipro.schemas.tracking import TrackingSampleResponse
from ujenzipro.services.delivery_service import DeliveryService
from ujenzipro.tracking.notifications import NotificationCenter
from ujenzipro.tracking.reader import TrackingReader
from ujenzipro.tracking.subscriber import ChangeFeedSubscriber

logger = logging.getLogger(__name__)


class LiveTrackingViewer:
    """
    Live view of one delivery at a time.

    Selecting a delivery opens its change channel before fetching history
    and buffers anything pushed meanwhile, so a sample committed during the
    fetch shows up exactly once.
    """

    def __init__(
        self,
        builder_id: UUID,
        delivery_service: DeliveryService,
        reader: TrackingReader,
        subscriber: ChangeFeedSubscriber,
        notifier: NotificationCenter,
        history_limit: Optional[int] = None,
    ):
        self.builder_id = builder_id
        self.delivery_service = delivery_service
        self.reader = reader
        self.subscriber = subscriber
        self.notifier = notifier
        self.history_limit = history_limit or settings.TRACKING_HISTORY_LIMIT

        self.deliveries: List[DeliveryRequestResponse] = []
        self.selected_delivery_id: Optional[UUID] = None
        self._samples: List[TrackingSampleResponse] = []
        self._seen: Dict[UUID, TrackingSampleResponse] = {}
        self._pending: Optional[List[TrackingSampleResponse]] = None
        self._generation = 0

    @property
    def samples(self) -> List[TrackingSampleResponse]:
        """Samples of the selected delivery, newest first."""
        return list(self._samples)

    @property
    def latest_sample(self) -> Optional[TrackingSampleResponse]:
        return self._samples[0] if self._samples else None

    async def refresh_deliveries(self) -> List[DeliveryRequestResponse]:
        """Reload active deliveries; selects the newest if nothing is selected."""
        try:
            self.deliveries = await self.delivery_service.list_active_deliveries(builder_id=self.builder_id)
        except AppException as e:
            logger.error(f"Error fetching deliveries: {e.message}", extra={"builder_id": str(self.builder_id)})
            self.notifier.error("Error", "Failed to fetch deliveries")
            return self.deliveries

        if self.selected_delivery_id is None and self.deliveries:
            await self.select_delivery(self.deliveries[0].id)
        return self.deliveries

    async def select_delivery(self, delivery_id: UUID) -> List[TrackingSampleResponse]:
        """Switch the view to another delivery."""
        self._generation += 1
        generation = self._generation

        self.subscriber.unsubscribe()
        self.selected_delivery_id = delivery_id
        self._samples = []
        self._seen = {}
        self._pending = []

        self.subscriber.subscribe(delivery_id, lambda sample: self._on_insert(generation, sample))
        history = await self.reader.list_samples(delivery_id, self.history_limit)
        if generation != self._generation:
            # superseded by a later selection while the fetch was running
            return self.samples

        pending, self._pending = self._pending, None
        self._merge(history)
        for sample in pending:
            self._prepend(sample)
        return self.samples

    async def refresh(self) -> List[TrackingSampleResponse]:
        """Refetch the selected delivery's history and merge it in."""
        if self.selected_delivery_id is None:
            return []
        generation = self._generation
        history = await self.reader.list_samples(self.selected_delivery_id, self.history_limit)
        if generation == self._generation:
            self._merge(history)
        return self.samples

    def close(self) -> None:
        self._generation += 1
        self.subscriber.unsubscribe()
        self.selected_delivery_id = None
        self._pending = None

    def _on_insert(self, generation: int, sample: TrackingSampleResponse) -> None:
        if generation != self._generation or sample.delivery_request_id != self.selected_delivery_id:
            return
        if self._pending is not None:
            self._pending.append(sample)
            return
        if self._prepend(sample):
            label = TRACKING_STATUS_LABELS.get(sample.status, sample.status.value)
            self.notifier.notify("Delivery Update", f"Status: {label}")

    def _prepend(self, sample: TrackingSampleResponse) -> bool:
        if sample.id in self._seen:
            return False
        self._seen[sample.id] = sample
        self._samples.insert(0, sample)
        return True

    def _merge(self, samples: Sequence[TrackingSampleResponse]) -> None:
        for sample in samples:
            self._seen.setdefault(sample.id, sample)
        self._samples = sorted(self._seen.values(), key=lambda s: s.created_at, reverse=True)

    async def __aenter__(self) -> "LiveTrackingViewer":
        await self.refresh_deliveries()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()
