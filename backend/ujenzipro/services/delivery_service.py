"""
Delivery request service with business logic.
"""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from ujenzipro.core.exceptions import NotFoundError
from ujenzipro.db.gateway import DELIVERY_REQUESTS
from ujenzipro.models.status import (
    DeliveryStatus,
    ProviderResponse,
    TrackingStatus,
    TERMINAL_STATUSES,
    can_transition,
    delivery_status_for,
    validate_transition,
)
from ujenzipro.schemas.delivery import (
    DeliveryRequestCreate,
    DeliveryRequestResponse,
    DeliveryResponseRequest,
)
from ujenzipro.services.base_service import BaseService

logger = logging.getLogger(__name__)

TRACKING_NUMBER_PREFIX = "JG"


def generate_tracking_number(epoch_ms: Optional[int] = None) -> str:
    """`JG` followed by the last eight digits of the millisecond timestamp."""
    if epoch_ms is None:
        epoch_ms = int(time.time() * 1000)
    return f"{TRACKING_NUMBER_PREFIX}{str(epoch_ms)[-8:]}"


class DeliveryService(BaseService):
    """Service for delivery request operations."""

    async def create_delivery(self, delivery_data: DeliveryRequestCreate) -> DeliveryRequestResponse:
        """Create a new pending delivery request with a fresh tracking number."""
        epoch_ms = int(time.time() * 1000)
        tracking_number = generate_tracking_number(epoch_ms)
        while await self.gateway.select(DELIVERY_REQUESTS, {"tracking_number": tracking_number}, limit=1):
            epoch_ms += 1
            tracking_number = generate_tracking_number(epoch_ms)

        row = delivery_data.model_dump()
        row.update(
            tracking_number=tracking_number,
            status=DeliveryStatus.PENDING,
            provider_id=None,
            provider_response=None,
        )
        created = await self.gateway.insert(DELIVERY_REQUESTS, row)
        logger.info(
            "Delivery request created",
            extra={"delivery_id": str(created["id"]), "tracking_number": tracking_number},
        )
        return DeliveryRequestResponse.model_validate(created)

    async def get_delivery(self, delivery_id: UUID) -> Optional[DeliveryRequestResponse]:
        """Get delivery request by ID."""
        rows = await self.gateway.select(DELIVERY_REQUESTS, {"id": delivery_id}, limit=1)
        if not rows:
            return None
        return DeliveryRequestResponse.model_validate(rows[0])

    async def require_delivery(self, delivery_id: UUID) -> DeliveryRequestResponse:
        """Get delivery request by ID or raise NotFoundError."""
        delivery = await self.get_delivery(delivery_id)
        if not delivery:
            raise NotFoundError("Delivery request not found", details={"delivery_id": str(delivery_id)})
        return delivery

    async def get_by_tracking_number(self, tracking_number: str) -> Optional[DeliveryRequestResponse]:
        """Look a delivery up by its public tracking number."""
        rows = await self.gateway.select(
            DELIVERY_REQUESTS, {"tracking_number": tracking_number.strip().upper()}, limit=1
        )
        if not rows:
            return None
        return DeliveryRequestResponse.model_validate(rows[0])

    async def list_pending_requests(self, limit: int = 100) -> List[DeliveryRequestResponse]:
        """Pending requests no provider has answered yet, newest first."""
        rows = await self.gateway.select(
            DELIVERY_REQUESTS,
            {"status": DeliveryStatus.PENDING, "provider_response": None},
            limit=limit,
        )
        return [DeliveryRequestResponse.model_validate(row) for row in rows]

    async def list_active_deliveries(
        self,
        provider_id: Optional[UUID] = None,
        builder_id: Optional[UUID] = None,
    ) -> List[DeliveryRequestResponse]:
        """
        Accepted deliveries that have not reached a terminal status, newest first.

        Args:
            provider_id: Only deliveries accepted by this provider
            builder_id: Only deliveries requested by this builder
        """
        filters = {"provider_response": ProviderResponse.ACCEPTED}
        if provider_id is not None:
            filters["provider_id"] = provider_id
        if builder_id is not None:
            filters["builder_id"] = builder_id

        rows = await self.gateway.select(
            DELIVERY_REQUESTS,
            filters,
            exclude={"status": sorted(TERMINAL_STATUSES)},
        )
        return [DeliveryRequestResponse.model_validate(row) for row in rows]

    async def respond_to_request(
        self,
        delivery_id: UUID,
        response_data: DeliveryResponseRequest,
    ) -> DeliveryRequestResponse:
        """Record a provider's acceptance or rejection of a pending request."""
        delivery = await self.require_delivery(delivery_id)
        accepted = response_data.response == ProviderResponse.ACCEPTED
        target = DeliveryStatus.ACCEPTED if accepted else DeliveryStatus.REJECTED
        if not validate_transition(delivery.status, target):
            return delivery

        rows = await self.gateway.update(
            DELIVERY_REQUESTS,
            {"id": delivery_id},
            {
                "provider_response": response_data.response,
                "provider_id": response_data.provider_id if accepted else None,
                "response_date": datetime.now(timezone.utc),
                "response_notes": response_data.notes,
                "status": target,
            },
        )
        logger.info(
            f"Delivery request {response_data.response.value}",
            extra={"delivery_id": str(delivery_id), "provider_id": str(response_data.provider_id)},
        )
        return DeliveryRequestResponse.model_validate(rows[0])

    async def update_status(self, delivery_id: UUID, status: DeliveryStatus) -> DeliveryRequestResponse:
        """
        Move a delivery to a new status through the transition table.

        Raises:
            NotFoundError: delivery does not exist
            InvalidStatusTransitionError: the move is not allowed
        """
        delivery = await self.require_delivery(delivery_id)
        if not validate_transition(delivery.status, status):
            return delivery

        values = {"status": status}
        if status == DeliveryStatus.DELIVERED:
            values["actual_delivery_time"] = datetime.now(timezone.utc)

        rows = await self.gateway.update(DELIVERY_REQUESTS, {"id": delivery_id}, values)
        logger.info(
            "Delivery status updated",
            extra={"delivery_id": str(delivery_id), "from": delivery.status.value, "to": DeliveryStatus(status).value},
        )
        return DeliveryRequestResponse.model_validate(rows[0])

    async def cancel_delivery(self, delivery_id: UUID) -> DeliveryRequestResponse:
        """Cancel a delivery that has not been picked up yet."""
        return await self.update_status(delivery_id, DeliveryStatus.CANCELLED)

    async def apply_tracking_status(
        self,
        delivery_id: UUID,
        tracking_status: TrackingStatus,
    ) -> DeliveryRequestResponse:
        """
        Write the delivery status implied by a tracking status, but only when
        it moves the delivery forward. Annotations never change the delivery.
        """
        delivery = await self.require_delivery(delivery_id)
        target = delivery_status_for(tracking_status)
        if target is None or target == delivery.status or not can_transition(delivery.status, target):
            return delivery
        return await self.update_status(delivery_id, target)
