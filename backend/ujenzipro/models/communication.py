"""
Delivery communication model - messages exchanged about one delivery.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import uuid
import enum

from ujenzipro.db.base import Base


class SenderType(str, enum.Enum):
    """Role of the party that authored a message."""
    SUPPLIER = "supplier"
    DELIVERY_PROVIDER = "delivery_provider"
    BUILDER = "builder"


class MessageType(str, enum.Enum):
    """Message kind."""
    TEXT = "text"
    STATUS_UPDATE = "status_update"
    LOCATION_UPDATE = "location_update"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Communication(Base):
    """Append-only message tied to a delivery."""

    __tablename__ = "delivery_communications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    delivery_request_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("delivery_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_type = Column(SQLEnum(SenderType, native_enum=False, values_callable=_enum_values), nullable=False)
    sender_id = Column(Uuid(as_uuid=True), nullable=False)
    sender_name = Column(String(255), nullable=False)
    message_type = Column(
        SQLEnum(MessageType, native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=MessageType.TEXT,
    )
    content = Column(String(4000), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # Relationships
    delivery_request = relationship("DeliveryRequest", back_populates="communications")
