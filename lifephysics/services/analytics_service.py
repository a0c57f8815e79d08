"""
Analytics and history read models.

Pure functions over a task list. Prerequisites count as their own rows in
the analytics views, inheriting their parent's category.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List

from lifephysics.domain.models.task import Task, TaskStatus

CLUTTER_THRESHOLDS = ((10, "High"), (5, "Moderate"))
RESILIENCE_THRESHOLDS = ((75, "Unshakeable"), (50, "Strong"), (25, "Growing"))

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass(frozen=True)
class AnalyticsRow:
    id: str
    title: str
    category: str
    status: TaskStatus
    is_prerequisite: bool = False
    parent_id: str = ""


@dataclass(frozen=True)
class CompletionSummary:
    pending: int
    completed: int
    total: int
    completion_rate: int
    clutter_level: str
    resilience_level: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "pending": self.pending,
            "completed": self.completed,
            "total": self.total,
            "completion_rate": self.completion_rate,
            "clutter_level": self.clutter_level,
            "resilience_level": self.resilience_level,
        }


def flatten_for_analytics(tasks: Iterable[Task]) -> List[AnalyticsRow]:
    rows: List[AnalyticsRow] = []
    for task in tasks:
        rows.append(
            AnalyticsRow(id=task.id, title=task.title, category=task.category, status=task.status)
        )
        for prereq in task.prerequisites:
            rows.append(
                AnalyticsRow(
                    id=prereq.id,
                    title=prereq.label,
                    category=task.category,
                    status=TaskStatus.COMPLETED if prereq.completed else TaskStatus.PENDING,
                    is_prerequisite=True,
                    parent_id=task.id,
                )
            )
    return rows


def category_breakdown(tasks: Iterable[Task]) -> Dict[str, Dict[str, int]]:
    """``{category: {"completed": n, "total": m}}`` in first-seen order."""
    breakdown: Dict[str, Dict[str, int]] = {}
    for row in flatten_for_analytics(tasks):
        entry = breakdown.setdefault(row.category, {"completed": 0, "total": 0})
        entry["total"] += 1
        if row.status == TaskStatus.COMPLETED:
            entry["completed"] += 1
    return breakdown


def _level_for(value: int, thresholds, default: str, inclusive: bool) -> str:
    for threshold, label in thresholds:
        if value >= threshold if inclusive else value > threshold:
            return label
    return default


def completion_summary(tasks: Iterable[Task]) -> CompletionSummary:
    rows = flatten_for_analytics(tasks)
    completed = sum(1 for row in rows if row.status == TaskStatus.COMPLETED)
    pending = len(rows) - completed
    total = len(rows)
    rate = int(completed / total * 100 + 0.5) if total else 0

    return CompletionSummary(
        pending=pending,
        completed=completed,
        total=total,
        completion_rate=rate,
        clutter_level=_level_for(pending, CLUTTER_THRESHOLDS, "Low", inclusive=True),
        resilience_level=_level_for(rate, RESILIENCE_THRESHOLDS, "Developing", inclusive=False),
    )


def narrative(summary: CompletionSummary, rank_title: str) -> str:
    """One-line reading of the summary for the analytics tab."""
    if summary.total == 0:
        return "The canvas of your journey is blank. Begin by defining your first quests."
    if summary.clutter_level == "High":
        return (
            "The noise of unfinished tasks is accumulating. "
            "Focus on clearing 'Heavy Weight' items to restore equilibrium."
        )
    if summary.resilience_level == "Unshakeable":
        return "You are moving with absolute momentum. Your flow is clear, and your actions are precise."
    return (
        f"Your journey as a {rank_title} is unfolding. Continue to balance your energy "
        "between new habits and completing active quests."
    )


def history(tasks: Iterable[Task], query: str = "") -> List[Task]:
    """Completed tasks, newest first, filtered on title or description."""
    needle = query.lower()
    completed = [task for task in tasks if task.status == TaskStatus.COMPLETED]
    # sorted() is stable, so tasks without a completion time keep their order.
    completed = sorted(completed, key=lambda task: task.completed_at or _EPOCH, reverse=True)
    return [
        task
        for task in completed
        if needle in task.title.lower() or needle in task.description.lower()
    ]
