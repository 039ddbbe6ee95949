"""
Tracking sample model - the append-only delivery tracking log.
"""

from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import uuid

from ujenzipro.db.base import Base
from ujenzipro.models.status import TrackingStatus


class TrackingSample(Base):
    """One immutable position-plus-status observation for a delivery."""

    __tablename__ = "delivery_tracking"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    delivery_request_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("delivery_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    provider_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    heading = Column(Float, nullable=True)  # degrees
    speed = Column(Float, nullable=True)  # m/s
    accuracy = Column(Float, nullable=True)  # metres

    status = Column(
        SQLEnum(
            TrackingStatus,
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )
    notes = Column(String(2000), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # Relationships
    delivery_request = relationship("DeliveryRequest", back_populates="tracking_samples")
