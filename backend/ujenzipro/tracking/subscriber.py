"""
Change-feed subscriber scoped to a single delivery at a time.
"""

import logging
from typing import Optional
from uuid import UUID

from ujenzipro.realtime.change_feed import Subscription
from ujenzipro.services.tracking_service import SampleCallback, TrackingService

logger = logging.getLogger(__name__)


class ChangeFeedSubscriber:
    """
    Holds at most one open tracking channel.

    Subscribing to a new delivery closes the previous channel before the
    new one is opened.
    """

    def __init__(self, tracking_service: TrackingService):
        self.tracking_service = tracking_service
        self._subscription: Optional[Subscription] = None
        self.delivery_id: Optional[UUID] = None

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    def subscribe(self, delivery_id: UUID, on_insert: SampleCallback) -> Subscription:
        self.unsubscribe()
        self._subscription = self.tracking_service.subscribe(delivery_id, on_insert)
        self.delivery_id = delivery_id
        logger.debug("Tracking channel opened", extra={"delivery_id": str(delivery_id)})
        return self._subscription

    def unsubscribe(self) -> None:
        if self._subscription is None:
            return
        self._subscription.close()
        logger.debug("Tracking channel closed", extra={"delivery_id": str(self.delivery_id)})
        self._subscription = None
        self.delivery_id = None

    def __enter__(self) -> "ChangeFeedSubscriber":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()
