"""
Base Repository Pattern

Purpose
-------
Generic, type-safe repository over SQLAlchemy 2.0 async sessions for the
cloud sync records.

Design Notes
------------
- Primary keys are read from the mapper, so composite keys work
  (``TaskRecord`` is keyed by ``(user_id, id)``).
- Repositories never commit: the caller owns the transaction through
  ``DatabaseService.get_transaction()``.
- No business logic.

Usage
-----
    class TaskRecordRepository(BaseRepository[TaskRecord]):
        async def for_user(self, session, user_id):
            return await self.find_many_where(session, TaskRecord.user_id == user_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic CRUD helpers for one record class.

    Args:
        model_class: The SQLAlchemy record class
        logger: Structured logger instance
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """
        Get one record by primary key (a tuple for composite keys).
        """
        instance = await session.get(self.model_class, id_value)
        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": str(id_value),
                "found": instance is not None,
            },
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[List[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "found_count": len(instances)},
        )
        return instances

    async def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        await session.flush()
        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )
        return instance

    async def merge(self, session: AsyncSession, instance: T) -> T:
        """
        Insert or overwrite by primary key (last writer wins).
        """
        merged = await session.merge(instance)
        self.log.debug(
            f"Repository.merge: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )
        return merged
