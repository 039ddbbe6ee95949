"""
Delivery and tracking status enumerations with the central transition table.

Every status change, whether it comes from the HTTP API or from an
in-process tracker, is validated here.
"""

import enum
from typing import Dict, FrozenSet, Optional

from ujenzipro.core.exceptions import InvalidStatusTransitionError


class DeliveryStatus(str, enum.Enum):
    """Lifecycle status of a delivery request."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ProviderResponse(str, enum.Enum):
    """Provider answer to a pending delivery request."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TrackingStatus(str, enum.Enum):
    """Status label carried by a tracking sample."""
    PICKED_UP = "picked_up"
    EN_ROUTE = "en_route"
    NEARBY = "nearby"
    ARRIVED_AT_DESTINATION = "arrived_at_destination"
    DELIVERED = "delivered"
    DELAYED = "delayed"
    ISSUE_REPORTED = "issue_reported"


DELIVERY_TRANSITIONS: Dict[DeliveryStatus, FrozenSet[DeliveryStatus]] = {
    DeliveryStatus.PENDING: frozenset({
        DeliveryStatus.ACCEPTED,
        DeliveryStatus.REJECTED,
        DeliveryStatus.CANCELLED,
    }),
    DeliveryStatus.ACCEPTED: frozenset({
        DeliveryStatus.PICKED_UP,
        DeliveryStatus.IN_TRANSIT,
        DeliveryStatus.DELIVERED,
        DeliveryStatus.CANCELLED,
    }),
    DeliveryStatus.PICKED_UP: frozenset({
        DeliveryStatus.IN_TRANSIT,
        DeliveryStatus.DELIVERED,
    }),
    DeliveryStatus.IN_TRANSIT: frozenset({
        DeliveryStatus.DELIVERED,
    }),
    DeliveryStatus.DELIVERED: frozenset(),
    DeliveryStatus.REJECTED: frozenset(),
    DeliveryStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in DELIVERY_TRANSITIONS.items() if not targets
)

# Primary progression of a provider's tracking status; annotations are absent.
TRACKING_RANK: Dict[TrackingStatus, int] = {
    TrackingStatus.PICKED_UP: 1,
    TrackingStatus.EN_ROUTE: 2,
    TrackingStatus.NEARBY: 3,
    TrackingStatus.ARRIVED_AT_DESTINATION: 4,
    TrackingStatus.DELIVERED: 5,
}

TRACKING_TO_DELIVERY: Dict[TrackingStatus, DeliveryStatus] = {
    TrackingStatus.PICKED_UP: DeliveryStatus.PICKED_UP,
    TrackingStatus.EN_ROUTE: DeliveryStatus.IN_TRANSIT,
    TrackingStatus.NEARBY: DeliveryStatus.IN_TRANSIT,
    TrackingStatus.ARRIVED_AT_DESTINATION: DeliveryStatus.IN_TRANSIT,
    TrackingStatus.DELIVERED: DeliveryStatus.DELIVERED,
}

TRACKING_STATUS_LABELS: Dict[TrackingStatus, str] = {
    TrackingStatus.PICKED_UP: "Picked Up",
    TrackingStatus.EN_ROUTE: "En Route",
    TrackingStatus.NEARBY: "Nearby",
    TrackingStatus.ARRIVED_AT_DESTINATION: "Arrived at Destination",
    TrackingStatus.DELIVERED: "Delivered",
    TrackingStatus.DELAYED: "Delayed",
    TrackingStatus.ISSUE_REPORTED: "Issue Reported",
}


def can_transition(current: DeliveryStatus, target: DeliveryStatus) -> bool:
    """True if `target` is reachable from `current` in one step (or is `current`)."""
    current = DeliveryStatus(current)
    target = DeliveryStatus(target)
    return current == target or target in DELIVERY_TRANSITIONS[current]


def validate_transition(current: DeliveryStatus, target: DeliveryStatus) -> bool:
    """
    Validate a delivery status change.

    Returns:
        True if the status actually changes, False for a same-status no-op

    Raises:
        InvalidStatusTransitionError: if the table does not allow the change
    """
    current = DeliveryStatus(current)
    target = DeliveryStatus(target)
    if current == target:
        return False
    if target not in DELIVERY_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current.value, target.value)
    return True


def is_annotation(status: TrackingStatus) -> bool:
    return TrackingStatus(status) not in TRACKING_RANK


def validate_tracking_progress(
    current: Optional[TrackingStatus],
    target: TrackingStatus,
) -> None:
    """Reject a primary tracking status that would move backwards."""
    target = TrackingStatus(target)
    if current is None or is_annotation(target):
        return
    current = TrackingStatus(current)
    if is_annotation(current):
        return
    if TRACKING_RANK[target] < TRACKING_RANK[current]:
        raise InvalidStatusTransitionError(current.value, target.value)


def delivery_status_for(tracking_status: TrackingStatus) -> Optional[DeliveryStatus]:
    """Delivery status implied by a tracking status, None for annotations."""
    return TRACKING_TO_DELIVERY.get(TrackingStatus(tracking_status))
