"""
Repositories for the cloud sync records.

Thin ``BaseRepository`` subclasses with the per-user lookups SyncService
needs. They never open or commit transactions.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from lifephysics.core.logging.logger import get_logger
from lifephysics.database.models import ProgressRecord, TaskRecord, UserRecord
from lifephysics.shared.base_repository import BaseRepository

logger = get_logger(__name__)


class UserRepository(BaseRepository[UserRecord]):
    def __init__(self) -> None:
        super().__init__(UserRecord, logger)


class TaskRecordRepository(BaseRepository[TaskRecord]):
    def __init__(self) -> None:
        super().__init__(TaskRecord, logger)

    async def for_user(self, session: AsyncSession, user_id: str) -> List[TaskRecord]:
        """All tasks of a user, oldest first."""
        return await self.find_many_where(
            session,
            TaskRecord.user_id == user_id,
            order_by=[TaskRecord.created_at, TaskRecord.id],
        )


class ProgressRepository(BaseRepository[ProgressRecord]):
    def __init__(self) -> None:
        super().__init__(ProgressRecord, logger)

    async def for_user(self, session: AsyncSession, user_id: str) -> Optional[ProgressRecord]:
        return await self.get(session, user_id)
