"""
Delivery communication Pydantic schemas.
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID

from ujenzipro.models.communication import SenderType, MessageType
from ujenzipro.models.status import TrackingStatus


class Sender(BaseModel):
    """Author of a message."""
    sender_type: SenderType
    sender_id: UUID
    sender_name: str = Field(..., min_length=1, max_length=255)


class MessageCreate(Sender):
    """Schema for sending a text message."""
    content: str = Field(..., min_length=1, max_length=4000)

    @model_validator(mode="after")
    def check_not_blank(self):
        if not self.content.strip():
            raise ValueError("content must not be blank")
        return self


class StatusUpdateCreate(Sender):
    """Schema for a status update posted to the communication hub."""
    status: TrackingStatus
    notes: Optional[str] = Field(None, max_length=2000)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @model_validator(mode="after")
    def check_location_pair(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self


class LocationShareCreate(Sender):
    """Schema for sharing a one-off location in the hub."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class CommunicationResponse(BaseModel):
    """Schema for communication response."""
    id: UUID
    delivery_request_id: UUID
    sender_type: SenderType
    sender_id: UUID
    sender_name: str
    message_type: MessageType
    content: str
    payload: Dict[str, Any] = {}
    created_at: datetime

    class Config:
        from_attributes = True


class CommunicationListResponse(BaseModel):
    """Schema for communication list response, oldest first."""
    items: List[CommunicationResponse]
    total: int
