"""
Data gateway - the insert/select/update/subscribe contract every caller
uses to reach persisted delivery data.

The gateway owns row identity and timestamps: ids and `created_at` are
always assigned here, never taken from the caller. Committed changes are
fanned out through the change feed.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Type
import logging
import uuid

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ujenzipro.core.exceptions import BackendUnavailableError
from ujenzipro.db.repositories.base_repository import BaseRepository
from ujenzipro.db.repositories.communication_repository import CommunicationRepository
from ujenzipro.db.repositories.delivery_request_repository import DeliveryRequestRepository
from ujenzipro.db.repositories.health_repository import HealthRepository
from ujenzipro.db.repositories.tracking_sample_repository import TrackingSampleRepository
from ujenzipro.realtime.change_feed import ChangeCallback, ChangeEvent, ChangeFeed, Subscription

logger = logging.getLogger(__name__)

DELIVERY_REQUESTS = "delivery_requests"
DELIVERY_TRACKING = "delivery_tracking"
DELIVERY_COMMUNICATIONS = "delivery_communications"

REPOSITORIES: Dict[str, Type[BaseRepository]] = {
    DELIVERY_REQUESTS: DeliveryRequestRepository,
    DELIVERY_TRACKING: TrackingSampleRepository,
    DELIVERY_COMMUNICATIONS: CommunicationRepository,
}


class ServerClock:
    """
    UTC clock whose readings strictly increase within the process, so rows
    ordered by `created_at` never tie.
    """

    def __init__(self, source: Optional[Callable[[], datetime]] = None):
        self._source = source or (lambda: datetime.now(timezone.utc))
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = self._source()
        if self._last is not None and current <= self._last:
            current = self._last + timedelta(microseconds=1)
        self._last = current
        return current


class DataGateway(ABC):
    """Backend contract used by services and tracking components."""

    @abstractmethod
    async def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        """Persist a new row; returns it with server-assigned id and created_at."""

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        exclude: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = "created_at",
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return rows matching equality filters in the requested order."""

    @abstractmethod
    async def update(
        self,
        table: str,
        filters: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> List[Dict[str, Any]]:
        """Update matching rows in place; returns the updated rows."""

    @abstractmethod
    def subscribe(
        self,
        table: str,
        event: ChangeEvent,
        filters: Optional[Mapping[str, Any]],
        callback: ChangeCallback,
    ) -> Subscription:
        """Open a change channel; the caller must close the returned handle."""

    @abstractmethod
    async def check_connection(self) -> bool:
        """True if the backend is reachable."""


def _row_to_dict(instance: Any) -> Dict[str, Any]:
    row = {}
    for attr in sa_inspect(instance).mapper.column_attrs:
        value = getattr(instance, attr.key)
        # SQLite hands timestamps back without tzinfo; everything stored is UTC
        if isinstance(value, datetime) and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        row[attr.key] = value
    return row


class SqlAlchemyGateway(DataGateway):
    """DataGateway backed by async SQLAlchemy and an in-process ChangeFeed."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        change_feed: ChangeFeed,
        clock: Optional[ServerClock] = None,
    ):
        self.session_maker = session_maker
        self.change_feed = change_feed
        self.clock = clock or ServerClock()

    def _repository_class(self, table: str) -> Type[BaseRepository]:
        try:
            return REPOSITORIES[table]
        except KeyError:
            raise ValueError(f"Unknown table '{table}'") from None

    async def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        repository_class = self._repository_class(table)
        values = {key: value for key, value in row.items() if key not in ("id", "created_at")}
        values["id"] = uuid.uuid4()
        values["created_at"] = self.clock.now()

        try:
            async with self.session_maker() as session:
                instance = await repository_class(session).create(**values)
                await session.commit()
                created = _row_to_dict(instance)
        except SQLAlchemyError as e:
            logger.error(f"Insert into {table} failed: {e}", extra={"table": table})
            raise BackendUnavailableError(f"Failed to write to {table}", details={"table": table}) from e

        logger.debug("Row inserted", extra={"table": table, "id": str(created["id"])})
        await self.change_feed.publish(table, ChangeEvent.INSERT, created)
        return created

    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        exclude: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = "created_at",
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        repository_class = self._repository_class(table)
        try:
            async with self.session_maker() as session:
                instances = await repository_class(session).list(
                    limit=limit,
                    order_by=order_by,
                    descending=descending,
                    exclude=exclude,
                    **dict(filters or {}),
                )
                return [_row_to_dict(instance) for instance in instances]
        except SQLAlchemyError as e:
            logger.error(f"Select from {table} failed: {e}", extra={"table": table})
            raise BackendUnavailableError(f"Failed to read from {table}", details={"table": table}) from e

    async def update(
        self,
        table: str,
        filters: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> List[Dict[str, Any]]:
        repository_class = self._repository_class(table)
        changes = {key: value for key, value in values.items() if key not in ("id", "created_at")}

        try:
            async with self.session_maker() as session:
                repository = repository_class(session)
                if hasattr(repository.model, "updated_at"):
                    changes["updated_at"] = self.clock.now()
                instances = await repository.update_where(filters, changes)
                await session.commit()
                updated = [_row_to_dict(instance) for instance in instances]
        except SQLAlchemyError as e:
            logger.error(f"Update of {table} failed: {e}", extra={"table": table})
            raise BackendUnavailableError(f"Failed to update {table}", details={"table": table}) from e

        for row in updated:
            await self.change_feed.publish(table, ChangeEvent.UPDATE, row)
        return updated

    def subscribe(
        self,
        table: str,
        event: ChangeEvent,
        filters: Optional[Mapping[str, Any]],
        callback: ChangeCallback,
    ) -> Subscription:
        self._repository_class(table)
        return self.change_feed.subscribe(table, event, filters, callback)

    async def check_connection(self) -> bool:
        try:
            async with self.session_maker() as session:
                return await HealthRepository(session).check_database()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database connection check failed: {e}")
            return False
