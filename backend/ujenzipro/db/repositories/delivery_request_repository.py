"""
Delivery request repository for database operations.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from ujenzipro.db.repositories.base_repository import BaseRepository
from ujenzipro.models.delivery_request import DeliveryRequest


class DeliveryRequestRepository(BaseRepository[DeliveryRequest]):
    """Repository for delivery request operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(DeliveryRequest, session)
