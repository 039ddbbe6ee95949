"""
Communication repository for delivery messages.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from ujenzipro.db.repositories.base_repository import AppendOnlyRepository
from ujenzipro.models.communication import Communication


class CommunicationRepository(AppendOnlyRepository[Communication]):
    """Repository for delivery communication operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Communication, session)
