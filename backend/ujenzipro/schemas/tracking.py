"""
Tracking sample Pydantic schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from ujenzipro.models.status import TrackingStatus


class PositionFields(BaseModel):
    """Geographic fix as reported by a device."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    heading: Optional[float] = Field(None, ge=0, lt=360)  # degrees
    speed: Optional[float] = Field(None, ge=0)  # m/s
    accuracy: Optional[float] = Field(None, ge=0)  # metres


class TrackingSampleCreate(PositionFields):
    """Schema for appending a sample to a delivery's tracking log."""
    provider_id: UUID
    status: TrackingStatus
    notes: Optional[str] = Field(None, max_length=2000)


class TrackingSampleResponse(PositionFields):
    """Schema for tracking sample response."""
    id: UUID
    delivery_request_id: UUID
    provider_id: UUID
    status: TrackingStatus
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TrackingSampleListResponse(BaseModel):
    """Schema for tracking history response, newest first."""
    items: List[TrackingSampleResponse]
    total: int


class TrackingSummaryResponse(BaseModel):
    """Latest known position of a delivery plus derived display values."""
    delivery_request_id: UUID
    delivery_status: str
    latest: Optional[TrackingSampleResponse] = None
    distance_to_destination_km: Optional[float] = None
    map_url: Optional[str] = None
