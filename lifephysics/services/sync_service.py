"""
Sync Service for Life Physics.

Purpose
-------
Mirror a signed-in user's tracker state into the cloud database and read it
back on sign-in.

Responsibilities
----------------
- Create the ``users`` row on first sign-in (``ensure_user``)
- Upsert every task of a user in one transaction (``push_tasks``)
- Overwrite the progress row (``push_progress``)
- Rebuild a ``TrackerSnapshot`` from the database (``pull_state``)
- Upload a guest's local tasks after sign-in (``migrate_guest_state``)
- React to ``state.changed`` events from the tracker (``on_state_changed``)

Non-Responsibilities
--------------------
- Conflict resolution between devices. Sync is last-writer-wins: whatever
  the device pushes last is what the database holds. Within one process,
  ``on_state_changed`` pushes a user's snapshots one at a time and skips
  any snapshot older than the last one stored.
- Session lifecycle (``DatabaseService.get_transaction``)

Failure Semantics
-----------------
SQLAlchemy failures are wrapped in ``DatabaseError`` with the operation name.
Calling any operation while cloud sync is not configured raises
``SyncError``. ``on_state_changed`` runs as a LOW-priority listener, so its
errors are isolated by the event bus and never reach the tracker.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lifephysics.core.database.service import DatabaseService
from lifephysics.core.event.bus import EventBus
from lifephysics.core.event.types import EventPayload, ListenerPriority
from lifephysics.core.exceptions import DatabaseError, SyncError, UserNotFoundError
from lifephysics.core.logging.logger import LogContext, get_logger
from lifephysics.database.models import ProgressRecord, TaskRecord, UserRecord
from lifephysics.database.repositories import (
    ProgressRepository,
    TaskRecordRepository,
    UserRepository,
)
from lifephysics.domain.models.avatar import DEFAULT_AVATAR_ID
from lifephysics.domain.models.task import (
    DEFAULT_PROJECT_ID,
    Difficulty,
    Prerequisite,
    Task,
    TaskStatus,
)
from lifephysics.services.tracker_service import TrackerSnapshot

logger = get_logger(__name__)

STATE_CHANGED_EVENT = "state.changed"


# ============================================================================
# RECORD MAPPING
# ============================================================================


def task_to_record(user_id: str, task: Task) -> TaskRecord:
    return TaskRecord(
        user_id=user_id,
        id=task.id,
        project_id=task.project_id,
        title=task.title,
        description=task.description,
        category=task.category,
        status=task.status.value,
        difficulty=task.difficulty.value,
        prerequisites=[p.to_dict() for p in task.prerequisites],
        created_at=task.created_at,
        completed_at=task.completed_at,
    )


def record_to_task(record: TaskRecord) -> Task:
    return Task(
        task_id=record.id,
        title=record.title,
        description=record.description or "",
        category=record.category,
        difficulty=Difficulty.from_value(record.difficulty),
        status=TaskStatus(record.status),
        prerequisites=[Prerequisite.from_dict(p) for p in record.prerequisites or []],
        created_at=record.created_at,
        completed_at=record.completed_at,
        project_id=record.project_id or DEFAULT_PROJECT_ID,
    )


class SyncService:
    """
    Cloud persistence for signed-in users.

    Usage Example
    -------------
    >>> sync = SyncService(event_bus)
    >>> sync.register_listeners()
    >>> await sync.ensure_user("google-123", "ada@example.com", "Ada")
    >>> snapshot = await sync.pull_state("google-123")
    """

    def __init__(self, event_bus: Optional[EventBus] = None) -> None:
        self._event_bus = event_bus
        self._users = UserRepository()
        self._tasks = TaskRecordRepository()
        self._progress = ProgressRepository()
        self._listener_id: Optional[str] = None
        # Per-user ordering of listener pushes.
        self._push_locks: Dict[str, asyncio.Lock] = {}
        self._last_pushed: Dict[str, datetime] = {}

    def register_listeners(self) -> None:
        """Subscribe ``on_state_changed`` on the fire-and-forget tier."""
        if self._event_bus is None or self._listener_id is not None:
            return
        self._listener_id = self._event_bus.subscribe(
            STATE_CHANGED_EVENT,
            self.on_state_changed,
            priority=ListenerPriority.LOW,
            identifier="sync_service.on_state_changed",
        )

    def unregister_listeners(self) -> None:
        if self._event_bus is None or self._listener_id is None:
            return
        self._event_bus.unsubscribe(STATE_CHANGED_EVENT, self._listener_id)
        self._listener_id = None

    # =========================================================================
    # INTERNALS
    # =========================================================================

    @staticmethod
    def _ensure_available(user_id: str) -> None:
        if not DatabaseService.is_initialized():
            raise SyncError(user_id, "cloud sync is not configured")

    @asynccontextmanager
    async def _transaction(
        self, operation: str, user_id: str, read_only: bool = False
    ) -> AsyncIterator[AsyncSession]:
        self._ensure_available(user_id)
        scope = DatabaseService.get_session if read_only else DatabaseService.get_transaction
        try:
            async with scope() as session:
                yield session
        except SQLAlchemyError as exc:
            raise DatabaseError(operation, exc) from exc

    # =========================================================================
    # USERS
    # =========================================================================

    async def ensure_user(self, google_id: str, email: str, name: Optional[str] = None) -> bool:
        """
        Create the user row on first sign-in.

        Returns True when a row was created, False when it already existed.
        An existing row keeps its stored email and name.
        """
        async with self._transaction("ensure_user", google_id) as session:
            existing = await self._users.get(session, google_id)
            if existing is not None:
                return False

            await self._users.add(session, UserRecord(google_id=google_id, email=email, name=name))

        logger.info("User created", extra={"user_id": google_id})
        return True

    # =========================================================================
    # TASKS
    # =========================================================================

    async def fetch_tasks(self, user_id: str) -> List[Task]:
        """All stored tasks of a user, oldest first."""
        async with self._transaction("fetch_tasks", user_id, read_only=True) as session:
            records = await self._tasks.for_user(session, user_id)
            return [record_to_task(record) for record in records]

    async def push_tasks(self, user_id: str, tasks: Iterable[Task]) -> int:
        """
        Upsert every given task in one transaction.

        Tasks already stored but missing from ``tasks`` are left alone; tasks
        are never deleted.

        Raises
        ------
        UserNotFoundError
            If ``ensure_user`` was never called for ``user_id``.
        """
        task_list = list(tasks)
        with LogContext(user_id=user_id, operation="push_tasks"):
            async with self._transaction("push_tasks", user_id) as session:
                if await self._users.get(session, user_id) is None:
                    raise UserNotFoundError(user_id)

                for task in task_list:
                    await self._tasks.merge(session, task_to_record(user_id, task))

            logger.debug("Tasks pushed", extra={"task_count": len(task_list)})
        return len(task_list)

    # =========================================================================
    # PROGRESS
    # =========================================================================

    async def push_progress(self, user_id: str, snapshot: TrackerSnapshot) -> None:
        """Overwrite the progress row with the snapshot's ledger and wardrobe."""
        progression = snapshot.progression
        wardrobe = snapshot.wardrobe
        record = ProgressRecord(
            user_id=user_id,
            level=int(progression.get("level", 1)),
            experience=int(progression.get("experience", 0)),
            coins=int(progression.get("coins", 0)),
            owned_avatar_ids=list(wardrobe.get("owned_avatar_ids") or [DEFAULT_AVATAR_ID]),
            selected_avatar_id=wardrobe.get("selected_avatar_id") or DEFAULT_AVATAR_ID,
        )

        async with self._transaction("push_progress", user_id) as session:
            if await self._users.get(session, user_id) is None:
                raise UserNotFoundError(user_id)
            await self._progress.merge(session, record)

        logger.debug(
            "Progress pushed",
            extra={"user_id": user_id, "level": record.level, "coins": record.coins},
        )

    # =========================================================================
    # FULL STATE
    # =========================================================================

    async def pull_state(self, user_id: str) -> Optional[TrackerSnapshot]:
        """
        Rebuild the user's snapshot from the database.

        Returns None when the user has neither tasks nor a progress row, so
        the caller can fall back to local or seed data.
        """
        async with self._transaction("pull_state", user_id, read_only=True) as session:
            task_records = await self._tasks.for_user(session, user_id)
            progress = await self._progress.for_user(session, user_id)

            if not task_records and progress is None:
                logger.info("No cloud state for user", extra={"user_id": user_id})
                return None

            tasks = [record_to_task(record).to_dict() for record in task_records]

        if progress is None:
            progression: Dict[str, int] = {"level": 1, "experience": 0, "coins": 0}
            wardrobe: Dict[str, Any] = {
                "owned_avatar_ids": [DEFAULT_AVATAR_ID],
                "selected_avatar_id": DEFAULT_AVATAR_ID,
            }
            updated_at = datetime.now(timezone.utc)
        else:
            progression = {
                "level": progress.level,
                "experience": progress.experience,
                "coins": progress.coins,
            }
            wardrobe = {
                "owned_avatar_ids": list(progress.owned_avatar_ids or [DEFAULT_AVATAR_ID]),
                "selected_avatar_id": progress.selected_avatar_id,
            }
            updated_at = progress.updated_at or datetime.now(timezone.utc)

        logger.info(
            "Cloud state pulled",
            extra={"user_id": user_id, "task_count": len(tasks), "level": progression["level"]},
        )
        return TrackerSnapshot(
            user_id=user_id,
            tasks=tasks,
            progression=progression,
            wardrobe=wardrobe,
            updated_at=updated_at,
        )

    async def push_state(self, snapshot: TrackerSnapshot) -> None:
        """Push tasks and progress of a snapshot."""
        tasks = [Task.from_dict(data) for data in snapshot.tasks]
        await self.push_tasks(snapshot.user_id, tasks)
        await self.push_progress(snapshot.user_id, snapshot)

    async def migrate_guest_state(self, user_id: str, guest_snapshot: TrackerSnapshot) -> int:
        """
        Upload a guest's local tasks to a freshly signed-in account.

        Only tasks are migrated. Guest progress and avatars stay on the
        device; the account's own progress row wins.

        Returns the number of tasks uploaded.
        """
        tasks = [Task.from_dict(data) for data in guest_snapshot.tasks]
        if not tasks:
            return 0

        uploaded = await self.push_tasks(user_id, tasks)
        logger.info(
            "Guest tasks migrated",
            extra={"user_id": user_id, "guest_id": guest_snapshot.user_id, "task_count": uploaded},
        )
        return uploaded

    # =========================================================================
    # EVENT LISTENER
    # =========================================================================

    async def on_state_changed(self, payload: EventPayload) -> None:
        """
        ``state.changed`` listener: push the full snapshot.

        Runs as a background task per event, so two changes can overlap. A
        snapshot whose ``updated_at`` is not newer than the last one pushed
        for the same user is dropped.
        """
        snapshot = TrackerSnapshot.from_dict(payload["snapshot"])
        user_id = snapshot.user_id
        lock = self._push_locks.setdefault(user_id, asyncio.Lock())

        with LogContext(user_id=user_id, operation="on_state_changed"):
            async with lock:
                last = self._last_pushed.get(user_id)
                if last is not None and snapshot.updated_at <= last:
                    logger.debug(
                        "Stale snapshot skipped",
                        extra={"updated_at": snapshot.updated_at, "last_pushed": last},
                    )
                    return

                await self.push_state(snapshot)
                self._last_pushed[user_id] = snapshot.updated_at
