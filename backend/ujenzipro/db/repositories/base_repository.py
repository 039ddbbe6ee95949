"""
Base repository class with common CRUD operations.
Repositories handle database access using async SQLAlchemy sessions.
"""

from typing import Any, Dict, Generic, List, Mapping, Optional, Type, TypeVar
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ujenzipro.core.exceptions import AppException
from ujenzipro.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository with common CRUD operations."""

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    def _column(self, name: str):
        if not hasattr(self.model, name):
            raise ValueError(f"{self.model.__tablename__} has no column '{name}'")
        return getattr(self.model, name)

    def _where(self, query, filters: Mapping[str, Any], exclude: Optional[Mapping[str, Any]] = None):
        """
        Apply equality filters to a query.

        None matches NULL, a list/tuple/set matches any of its members.
        `exclude` applies the negated form of the same rules.
        """
        for key, value in filters.items():
            column = self._column(key)
            if value is None:
                query = query.where(column.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                query = query.where(column.in_(list(value)))
            else:
                query = query.where(column == value)

        for key, value in (exclude or {}).items():
            column = self._column(key)
            if value is None:
                query = query.where(column.is_not(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                query = query.where(column.not_in(list(value)))
            else:
                query = query.where(column != value)
        return query

    async def create(self, **kwargs) -> ModelType:
        """
        Create a new record.

        Args:
            **kwargs: Model attributes

        Returns:
            Created model instance
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def list(
        self,
        skip: int = 0,
        limit: Optional[int] = 100,
        order_by: Optional[str] = None,
        descending: bool = False,
        exclude: Optional[Mapping[str, Any]] = None,
        **filters,
    ) -> List[ModelType]:
        """
        List records with pagination, ordering and filters.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return, None for no cap
            order_by: Column to order by
            descending: Order newest/largest first
            exclude: Filters that matching rows must NOT satisfy
            **filters: Filter criteria

        Returns:
            List of model instances
        """
        query = self._where(select(self.model), filters, exclude)

        if order_by:
            column = self._column(order_by)
            query = query.order_by(column.desc() if descending else column.asc())

        query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update_where(self, filters: Mapping[str, Any], values: Dict[str, Any]) -> List[ModelType]:
        """
        Update every record matching `filters`.

        Returns:
            Updated model instances
        """
        if not filters:
            raise ValueError("update_where requires at least one filter")

        instances = await self.list(limit=None, **filters)
        for instance in instances:
            for key, value in values.items():
                self._column(key)
                setattr(instance, key, value)
        await self.session.flush()
        return instances


class AppendOnlyRepository(BaseRepository[ModelType]):
    """Repository for log tables whose rows are never changed once written."""

    async def update_where(self, filters: Mapping[str, Any], values: Dict[str, Any]) -> List[ModelType]:
        raise AppException(
            f"{self.model.__tablename__} is append-only",
            status_code=405,
            details={"table": self.model.__tablename__},
        )
