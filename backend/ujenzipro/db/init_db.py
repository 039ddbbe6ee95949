"""
Database bootstrapping.
"""

from sqlalchemy.ext.asyncio import AsyncEngine

from ujenzipro.db.base import Base
from ujenzipro.core.logging import get_logger

logger = get_logger(__name__)


async def create_tables(engine: AsyncEngine) -> None:
    """
    Create all database tables.
    Used for development databases and the test suite.
    """
    import ujenzipro.models  # noqa: F401  registers every model with Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables initialized", extra={"tables": sorted(Base.metadata.tables)})


async def drop_tables(engine: AsyncEngine) -> None:
    """Drop all database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    logger.info("Database tables dropped")
