"""
Tracker Service for Life Physics.

Purpose
-------
The entry point the application talks to. Orchestrates the task state
machine, the reward roller, the progression ledger and the avatar wardrobe
for one user, and hands the full updated state to a write-through hook after
every change.

Responsibilities
----------------
- Route toggles through ``Task`` and feed the direction into ``RewardRoller``
- Apply rolled rewards to ``ProgressionLedger``
- Buy and equip avatars against the ledger's coins
- Build ``TrackerSnapshot`` objects and restore from them
- Call ``on_change`` with the snapshot plus drained domain events

Non-Responsibilities
--------------------
- Persistence. The hook decides (local file for guests, event bus publish
  for signed-in users, see ``ApplicationContext``).
- Async work. Every operation runs to completion synchronously.

Failure Semantics
-----------------
Unknown task or prerequisite ids are no-ops that return
``RewardResult.none()`` (or ``None``/``False``) and do not call the hook. A
failing hook is logged; the in-memory state stays updated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from lifephysics.core.logging.logger import LogContext, get_logger
from lifephysics.domain.defaults import initial_tasks
from lifephysics.domain.models.avatar import AvatarWardrobe
from lifephysics.domain.models.base import DomainEvent, DomainValidationError
from lifephysics.domain.models.progression import ProgressionLedger
from lifephysics.domain.models.task import (
    Difficulty,
    Prerequisite,
    Task,
    TaskStatus,
    new_id,
)
from lifephysics.domain.rewards import RewardResult, RewardRoller

logger = get_logger(__name__)

RANK_TITLES = (
    (5, "Fragment Seeker"),
    (10, "Momentum Builder"),
)
TOP_RANK_TITLE = "Pattern Mapper"


def rank_title_for(level: int) -> str:
    for ceiling, title in RANK_TITLES:
        if level < ceiling:
            return title
    return TOP_RANK_TITLE


def round_half_up(value: float) -> int:
    return int(value + 0.5)


@dataclass
class TrackerSnapshot:
    """
    Full state of one user's tracker, as plain JSON-ready data.

    ``tasks`` holds ``Task.to_dict()`` entries; ``progression`` holds
    ``level``/``experience``/``coins``; ``wardrobe`` holds the owned and
    selected avatar ids.
    """

    user_id: str
    tasks: List[Dict[str, Any]]
    progression: Dict[str, int]
    wardrobe: Dict[str, Any]
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "tasks": self.tasks,
            "progression": self.progression,
            "wardrobe": self.wardrobe,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackerSnapshot":
        if "user_id" not in data:
            raise DomainValidationError("snapshot has no user_id", field="user_id")

        updated_at = data.get("updated_at")
        return cls(
            user_id=str(data["user_id"]),
            tasks=list(data.get("tasks") or []),
            progression=dict(data.get("progression") or {}),
            wardrobe=dict(data.get("wardrobe") or {}),
            updated_at=(
                datetime.fromisoformat(updated_at) if updated_at else datetime.now(timezone.utc)
            ),
        )


@dataclass(frozen=True)
class StateChange:
    """What the write-through hook receives after every change."""

    operation: str
    snapshot: TrackerSnapshot
    events: List[DomainEvent]

    def to_payload(self) -> Dict[str, Any]:
        """Event bus payload for ``state.changed``."""
        return {
            "user_id": self.snapshot.user_id,
            "operation": self.operation,
            "snapshot": self.snapshot.to_dict(),
            "events": [
                {
                    "event_name": event.event_name,
                    "payload": event.payload,
                    "occurred_at": event.occurred_at.isoformat(),
                }
                for event in self.events
            ],
        }


StateChangeHook = Callable[[StateChange], None]


class TrackerService:
    """
    One user's tracker.

    Usage Example
    -------------
    >>> tracker = TrackerService.new("guest")
    >>> task = tracker.add_task("Stretch", difficulty=Difficulty.EASY)
    >>> tracker.toggle_task(task.id).experience_delta >= 100
    True
    """

    def __init__(
        self,
        user_id: str,
        tasks: Optional[List[Task]] = None,
        ledger: Optional[ProgressionLedger] = None,
        wardrobe: Optional[AvatarWardrobe] = None,
        roller: Optional[RewardRoller] = None,
        on_change: Optional[StateChangeHook] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.user_id = user_id
        self._tasks: List[Task] = list(tasks or [])
        self.ledger = ledger or ProgressionLedger(user_id)
        self.wardrobe = wardrobe or AvatarWardrobe(user_id)
        self.roller = roller or RewardRoller()
        self.on_change = on_change
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def new(cls, user_id: str, **kwargs: Any) -> "TrackerService":
        """A fresh tracker seeded with the onboarding task."""
        return cls(user_id, tasks=initial_tasks(), **kwargs)

    @classmethod
    def from_snapshot(
        cls,
        snapshot: TrackerSnapshot,
        roller: Optional[RewardRoller] = None,
        on_change: Optional[StateChangeHook] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "TrackerService":
        """
        Restore a tracker.

        Raises
        ------
        DomainValidationError
            If the snapshot holds malformed data (negative coins, empty task
            title, level below 1).
        """
        return cls(
            user_id=snapshot.user_id,
            tasks=[Task.from_dict(data) for data in snapshot.tasks],
            ledger=ProgressionLedger.from_dict(snapshot.user_id, snapshot.progression),
            wardrobe=AvatarWardrobe.from_dict(snapshot.user_id, snapshot.wardrobe),
            roller=roller,
            on_change=on_change,
            clock=clock,
        )

    # =========================================================================
    # READ MODEL
    # =========================================================================

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks)

    def get_task(self, task_id: str) -> Optional[Task]:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def pending_tasks(self) -> List[Task]:
        return [t for t in self._tasks if t.status == TaskStatus.PENDING]

    def completed_tasks(self) -> List[Task]:
        return [t for t in self._tasks if t.status == TaskStatus.COMPLETED]

    @property
    def progress(self) -> int:
        """Rounded percentage of completed tasks (0 with no tasks)."""
        if not self._tasks:
            return 0
        return round_half_up(len(self.completed_tasks()) / len(self._tasks) * 100)

    @property
    def rank_title(self) -> str:
        return rank_title_for(self.ledger.level)

    @property
    def experience_to_next_level(self) -> int:
        return self.ledger.experience_to_next_level

    def snapshot(self) -> TrackerSnapshot:
        return TrackerSnapshot(
            user_id=self.user_id,
            tasks=[task.to_dict() for task in self._tasks],
            progression=self.ledger.to_dict(),
            wardrobe=self.wardrobe.to_dict(),
            updated_at=self._clock(),
        )

    # =========================================================================
    # TASK OPERATIONS
    # =========================================================================

    def add_task(
        self,
        title: str,
        description: str = "",
        difficulty: Difficulty = Difficulty.MEDIUM,
        category: str = "Habits",
    ) -> Task:
        """
        Append a new pending task with no prerequisites.

        Raises
        ------
        DomainValidationError
            If the title is empty or the category is unknown.
        """
        task = Task(
            task_id=new_id(),
            title=title,
            description=description,
            category=category,
            difficulty=difficulty,
            created_at=self._clock(),
        )
        self._tasks.append(task)
        logger.info(
            "Task added",
            extra={"user_id": self.user_id, "task_id": task.id, "difficulty": difficulty.name},
        )
        self._commit("add_task")
        return task

    def toggle_task(self, task_id: str) -> RewardResult:
        """
        Flip a task without prerequisites and roll its reward.

        Tasks with prerequisites, and unknown ids, return
        ``RewardResult.none()`` and change nothing.
        """
        task = self.get_task(task_id)
        if task is None:
            logger.debug("toggle_task: unknown task", extra={"task_id": task_id})
            return RewardResult.none()

        with LogContext(user_id=self.user_id, task_id=task_id, operation="toggle_task"):
            is_completing = task.toggle(self._clock())
            if is_completing is None:
                return RewardResult.none()

            result = self.roller.roll_task(task.difficulty, is_completing)
            self._apply(result, is_completing)
            self._commit("toggle_task")
            return result

    def toggle_prerequisite(self, task_id: str, prereq_id: str) -> RewardResult:
        """
        Flip one labeled prerequisite and roll the prerequisite reward.

        The parent task's status is re-derived; its own difficulty reward is
        not rolled when it auto-completes.
        """
        task = self.get_task(task_id)
        if task is None:
            return RewardResult.none()

        with LogContext(user_id=self.user_id, task_id=task_id, operation="toggle_prerequisite"):
            is_completing = task.toggle_prerequisite(prereq_id, self._clock())
            if is_completing is None:
                logger.debug(
                    "Prerequisite toggle refused",
                    extra={"prereq_id": prereq_id},
                )
                return RewardResult.none()

            result = self.roller.roll_prerequisite(is_completing)
            self._apply(result, is_completing)
            self._commit("toggle_prerequisite")
            return result

    def add_prerequisite(self, task_id: str) -> Optional[Prerequisite]:
        task = self.get_task(task_id)
        if task is None:
            return None

        prereq = task.add_prerequisite(now=self._clock())
        if prereq is None:
            return None

        self._commit("add_prerequisite")
        return prereq

    def update_prerequisite_label(self, task_id: str, prereq_id: str, label: str) -> None:
        task = self.get_task(task_id)
        if task is None:
            return

        if task.update_prerequisite_label(prereq_id, label):
            self._commit("update_prerequisite_label")

    # =========================================================================
    # AVATAR OPERATIONS
    # =========================================================================

    def buy_avatar(self, avatar_id: str, price: int) -> bool:
        bought = self.wardrobe.buy(avatar_id, price, self.ledger)
        logger.info(
            "Avatar purchase" if bought else "Avatar purchase denied",
            extra={
                "user_id": self.user_id,
                "avatar_id": avatar_id,
                "price": price,
                "coins": self.ledger.coins,
            },
        )
        if bought:
            self._commit("buy_avatar")
        return bought

    def select_avatar(self, avatar_id: str) -> bool:
        selected = self.wardrobe.select(avatar_id)
        if selected:
            self._commit("select_avatar")
        return selected

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _apply(self, result: RewardResult, is_completing: bool) -> None:
        levels_gained = self.ledger.apply_reward(result)
        logger.info(
            "Reward applied",
            extra={
                "direction": "complete" if is_completing else "revert",
                "experience_delta": result.experience_delta,
                "currency_delta": result.currency_delta,
                "is_critical": result.is_critical,
                "levels_gained": levels_gained,
                "level": self.ledger.level,
            },
        )

    def _drain_events(self) -> List[DomainEvent]:
        events: List[DomainEvent] = []
        for task in self._tasks:
            events.extend(task.clear_domain_events())
        events.extend(self.ledger.clear_domain_events())
        events.extend(self.wardrobe.clear_domain_events())
        events.sort(key=lambda event: event.occurred_at)
        return events

    def _commit(self, operation: str) -> None:
        change = StateChange(operation=operation, snapshot=self.snapshot(), events=self._drain_events())
        if self.on_change is None:
            return

        try:
            self.on_change(change)
        except Exception as exc:
            # In-memory state is authoritative; persistence failures never roll it back.
            logger.error(
                "Write-through hook failed",
                extra={
                    "user_id": self.user_id,
                    "operation": operation,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
