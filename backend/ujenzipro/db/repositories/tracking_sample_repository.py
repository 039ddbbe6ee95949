"""
Tracking sample repository for the append-only tracking log.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from ujenzipro.db.repositories.base_repository import AppendOnlyRepository
from ujenzipro.models.tracking_sample import TrackingSample


class TrackingSampleRepository(AppendOnlyRepository[TrackingSample]):
    """Repository for tracking sample operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(TrackingSample, session)
