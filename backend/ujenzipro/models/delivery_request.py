"""
Delivery request model.
"""

from sqlalchemy import Column, String, Float, Integer, DateTime, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import uuid

from ujenzipro.db.base import Base
from ujenzipro.models.status import DeliveryStatus, ProviderResponse


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class DeliveryRequest(Base):
    """A request to move material from a pickup point to a drop-off point."""

    __tablename__ = "delivery_requests"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    tracking_number = Column(String(32), unique=True, nullable=False, index=True)  # e.g. "JG12345678"
    builder_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    provider_id = Column(Uuid(as_uuid=True), nullable=True, index=True)

    pickup_address = Column(String(500), nullable=False)
    pickup_latitude = Column(Float, nullable=True)
    pickup_longitude = Column(Float, nullable=True)
    delivery_address = Column(String(500), nullable=False)
    delivery_latitude = Column(Float, nullable=True)
    delivery_longitude = Column(Float, nullable=True)

    material_type = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)

    status = Column(
        SQLEnum(DeliveryStatus, native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=DeliveryStatus.PENDING,
        index=True,
    )
    provider_response = Column(
        SQLEnum(ProviderResponse, native_enum=False, values_callable=_enum_values),
        nullable=True,
    )
    response_notes = Column(String(2000), nullable=True)
    response_date = Column(DateTime(timezone=True), nullable=True)
    actual_delivery_time = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    tracking_samples = relationship("TrackingSample", back_populates="delivery_request", viewonly=True)
    communications = relationship("Communication", back_populates="delivery_request", viewonly=True)
