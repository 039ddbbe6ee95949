"""
Database session management with async SQLAlchemy 2.0.
Handles connection pooling and session lifecycle.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from typing import Optional

from ujenzipro.core.config import settings
from ujenzipro.core.logging import get_logger

logger = get_logger(__name__)

# Global engine and sessionmaker
engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create async SQLAlchemy engine with connection pooling."""
    global engine

    database_url = database_url or settings.DATABASE_URL
    pool_options = {}
    if not database_url.startswith("sqlite"):
        # SQLite drivers manage their own pool
        pool_options = {"pool_size": 5, "max_overflow": 10}

    engine = create_async_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        **pool_options,
    )

    logger.info("Database engine created", extra=pool_options)
    return engine


def create_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Create async sessionmaker."""
    global async_session_maker

    if engine is None:
        create_engine()

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    logger.info("Sessionmaker created")
    return async_session_maker


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the process sessionmaker, creating it on first use."""
    if async_session_maker is None:
        return create_sessionmaker()
    return async_session_maker


async def init_db() -> None:
    """Initialize database connection and create tables when configured to."""
    if engine is None:
        create_engine()

    if async_session_maker is None:
        create_sessionmaker()

    if settings.DB_CREATE_TABLES:
        from ujenzipro.db.init_db import create_tables
        await create_tables(engine)

    logger.info("Database initialized")


async def close_db() -> None:
    """Close database connections."""
    global engine, async_session_maker

    if engine:
        await engine.dispose()
        engine = None
        async_session_maker = None
        logger.info("Database connections closed")
