"""
Task Domain Model for Life Physics.

Purpose
-------
Rich domain model for a tracked task and its ordered prerequisites, holding
the task/prerequisite state machine.

States
------
- Task: PENDING <-> COMPLETED
- Prerequisite: incomplete <-> completed

A task with prerequisites can only reach COMPLETED through
``derive_task_status``: every prerequisite completed with a non-empty label.
A task without prerequisites is completed by a direct toggle.

Failure Semantics
-----------------
Unknown prerequisite ids and unlabeled prerequisites are silent no-ops
(``None`` / ``False`` results) so duplicate UI events are idempotent.

Non-Responsibilities
--------------------
- Rewards (the tracker feeds the returned direction into RewardRoller)
- Persistence (snapshots are plain dicts, see ``to_dict`` / ``from_dict``)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from lifephysics.domain.models.base import AggregateRoot, DomainValidationError, validate_not_empty


class Difficulty(str, Enum):
    """Task tier; the value is the label shown to users."""

    EASY = "Easy Start"
    MEDIUM = "Some Weight"
    HARD = "Heavy Weight"

    @classmethod
    def from_value(cls, value: str) -> "Difficulty":
        """Accept either the label ("Heavy Weight") or the member name ("HARD")."""
        for member in cls:
            if value == member.value or value.upper() == member.name:
                return member
        raise DomainValidationError(f"Unknown difficulty: {value!r}", field="difficulty")


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


CATEGORIES = ("Habits", "Energy", "Desire", "Choices", "Time")
DEFAULT_PROJECT_ID = "p1"


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    # Older snapshots carry a trailing "Z".
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def new_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class Prerequisite:
    """
    A labeled sub-item of a task.

    Created with an empty label. An empty (or whitespace-only) label blocks
    toggling and never counts toward "all complete".
    """

    id: str
    label: str = ""
    completed: bool = False
    completed_at: Optional[datetime] = None

    @property
    def is_labeled(self) -> bool:
        return bool(self.label.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "completed": self.completed,
            "completed_at": _format_timestamp(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Prerequisite":
        return cls(
            id=str(data["id"]),
            label=data.get("label") or "",
            completed=bool(data.get("completed", False)),
            completed_at=_parse_timestamp(data.get("completed_at") or data.get("completedAt")),
        )


def derive_task_status(prerequisites: Iterable[Prerequisite]) -> TaskStatus:
    """
    Completed iff there is at least one prerequisite and every one of them is
    completed with a non-empty label.
    """
    items = list(prerequisites)
    if items and all(p.completed and p.is_labeled for p in items):
        return TaskStatus.COMPLETED
    return TaskStatus.PENDING


class Task(AggregateRoot):
    """
    A tracked task. Tasks are never deleted.

    Usage Example
    -------------
    >>> task = Task("t1", "Stretch", difficulty=Difficulty.EASY)
    >>> task.toggle(now)
    True
    >>> task.status
    <TaskStatus.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        task_id: str,
        title: str,
        description: str = "",
        category: str = "Habits",
        difficulty: Difficulty = Difficulty.MEDIUM,
        status: TaskStatus = TaskStatus.PENDING,
        prerequisites: Optional[List[Prerequisite]] = None,
        created_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
        project_id: str = DEFAULT_PROJECT_ID,
    ) -> None:
        super().__init__(task_id)
        validate_not_empty(title, "title")
        if category not in CATEGORIES:
            raise DomainValidationError(f"Unknown category: {category!r}", field="category")

        self.title = title
        self.description = description
        self.category = category
        self.difficulty = difficulty
        self.status = status
        self.created_at = created_at or datetime.now(timezone.utc)
        self.completed_at = completed_at
        self.project_id = project_id
        self._prerequisites: List[Prerequisite] = list(prerequisites or [])

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def prerequisites(self) -> List[Prerequisite]:
        """Copy of the ordered prerequisite list."""
        return list(self._prerequisites)

    @property
    def has_prerequisites(self) -> bool:
        return bool(self._prerequisites)

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def get_prerequisite(self, prereq_id: str) -> Optional[Prerequisite]:
        for prereq in self._prerequisites:
            if prereq.id == prereq_id:
                return prereq
        return None

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    def toggle(self, now: datetime) -> Optional[bool]:
        """
        Flip a task that has no prerequisites.

        Returns ``True`` when completing, ``False`` when reverting, and
        ``None`` (no change) when the task has prerequisites.
        """
        if self._prerequisites:
            return None

        is_completing = self.status == TaskStatus.PENDING
        self._set_status(TaskStatus.COMPLETED if is_completing else TaskStatus.PENDING, now)
        return is_completing

    def toggle_prerequisite(self, prereq_id: str, now: datetime) -> Optional[bool]:
        """
        Flip one prerequisite and re-derive the task status.

        Returns the direction of the flip, or ``None`` when the id is unknown
        or the prerequisite's label is empty.
        """
        prereq = self.get_prerequisite(prereq_id)
        if prereq is None or not prereq.is_labeled:
            return None

        is_completing = not prereq.completed
        prereq.completed = is_completing
        prereq.completed_at = now if is_completing else None

        self._rederive_status(now)
        return is_completing

    def add_prerequisite(
        self, prereq_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> Optional[Prerequisite]:
        """
        Append an empty, incomplete prerequisite.

        Refused (``None``) while the last prerequisite is still unlabeled. A
        completed task drops back to pending because the new item is open.
        """
        if self._prerequisites and not self._prerequisites[-1].is_labeled:
            return None

        prereq = Prerequisite(id=prereq_id or new_id())
        self._prerequisites.append(prereq)
        self._rederive_status(now or datetime.now(timezone.utc))
        return prereq

    def update_prerequisite_label(self, prereq_id: str, label: str) -> bool:
        """Relabel a prerequisite. No status or reward effect."""
        prereq = self.get_prerequisite(prereq_id)
        if prereq is None:
            return False
        prereq.label = label
        return True

    def _rederive_status(self, now: datetime) -> None:
        self._set_status(derive_task_status(self._prerequisites), now)

    def _set_status(self, status: TaskStatus, now: datetime) -> None:
        if status == self.status:
            return
        self.status = status
        self.completed_at = now if status == TaskStatus.COMPLETED else None
        self.add_domain_event(
            "task.status_changed",
            {
                "task_id": self.id,
                "status": status.value,
                "completed_at": _format_timestamp(self.completed_at),
            },
        )

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "status": self.status.value,
            "difficulty": self.difficulty.value,
            "created_at": _format_timestamp(self.created_at),
            "completed_at": _format_timestamp(self.completed_at),
            "prerequisites": [p.to_dict() for p in self._prerequisites],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """
        Build a task from a snapshot dict.

        Accepts both snake_case keys and the camelCase keys of older
        browser snapshots (``projectId``, ``createdAt``, ``completedAt``).
        """
        return cls(
            task_id=str(data["id"]),
            title=data["title"],
            description=data.get("description") or "",
            category=data.get("category") or "Habits",
            difficulty=Difficulty.from_value(data.get("difficulty") or Difficulty.MEDIUM.value),
            status=TaskStatus(data.get("status") or TaskStatus.PENDING.value),
            prerequisites=[Prerequisite.from_dict(p) for p in data.get("prerequisites") or []],
            created_at=_parse_timestamp(data.get("created_at") or data.get("createdAt")),
            completed_at=_parse_timestamp(data.get("completed_at") or data.get("completedAt")),
            project_id=data.get("project_id") or data.get("projectId") or DEFAULT_PROJECT_ID,
        )

    def __repr__(self) -> str:
        return (
            f"Task(id={self.id!r}, title={self.title!r}, status={self.status.value}, "
            f"difficulty={self.difficulty.name}, prerequisites={len(self._prerequisites)})"
        )
