"""
Delivery request Pydantic schemas for request/response validation.
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from ujenzipro.models.status import DeliveryStatus, ProviderResponse


class DeliveryRequestBase(BaseModel):
    """Base delivery request schema with common fields."""
    pickup_address: str = Field(..., min_length=1, max_length=500)
    pickup_latitude: Optional[float] = Field(None, ge=-90, le=90)
    pickup_longitude: Optional[float] = Field(None, ge=-180, le=180)
    delivery_address: str = Field(..., min_length=1, max_length=500)
    delivery_latitude: Optional[float] = Field(None, ge=-90, le=90)
    delivery_longitude: Optional[float] = Field(None, ge=-180, le=180)
    material_type: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(..., gt=0)


class DeliveryRequestCreate(DeliveryRequestBase):
    """Schema for creating a delivery request."""
    builder_id: UUID

    @model_validator(mode="after")
    def check_coordinate_pairs(self):
        for prefix in ("pickup", "delivery"):
            latitude = getattr(self, f"{prefix}_latitude")
            longitude = getattr(self, f"{prefix}_longitude")
            if (latitude is None) != (longitude is None):
                raise ValueError(f"{prefix}_latitude and {prefix}_longitude must be given together")
        return self


class DeliveryResponseRequest(BaseModel):
    """Provider answer to a pending delivery request."""
    provider_id: UUID
    response: ProviderResponse
    notes: Optional[str] = Field(None, max_length=2000)


class DeliveryStatusUpdate(BaseModel):
    """Schema for moving a delivery to a new status."""
    status: DeliveryStatus


class DeliveryRequestResponse(DeliveryRequestBase):
    """Schema for delivery request response."""
    id: UUID
    tracking_number: str
    builder_id: UUID
    provider_id: Optional[UUID] = None
    status: DeliveryStatus
    provider_response: Optional[ProviderResponse] = None
    response_notes: Optional[str] = None
    response_date: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeliveryRequestListResponse(BaseModel):
    """Schema for delivery request list response."""
    items: List[DeliveryRequestResponse]
    total: int
