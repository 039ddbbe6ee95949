"""
Database models.
Import all models here to ensure they're registered with Base.
"""

from ujenzipro.models.delivery_request import DeliveryRequest
from ujenzipro.models.tracking_sample import TrackingSample
from ujenzipro.models.communication import Communication, SenderType, MessageType
from ujenzipro.models.status import DeliveryStatus, ProviderResponse, TrackingStatus

__all__ = [
    "DeliveryRequest",
    "TrackingSample",
    "Communication",
    "SenderType",
    "MessageType",
    "DeliveryStatus",
    "ProviderResponse",
    "TrackingStatus",
]
