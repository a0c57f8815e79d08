"""Seed data for a fresh device."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from lifephysics.domain.models.task import (
    DEFAULT_PROJECT_ID,
    Difficulty,
    Prerequisite,
    Task,
)


def initial_tasks(now: Optional[datetime] = None) -> List[Task]:
    """The onboarding task shown before the user has added anything."""
    created_at = now or datetime.now(timezone.utc)
    return [
        Task(
            task_id="2",
            title="Notice Your Life",
            description=(
                "Insert the tasks that occupy your current spacetime to visualize their weight."
            ),
            category="Habits",
            difficulty=Difficulty.MEDIUM,
            prerequisites=[Prerequisite(id="2-initial")],
            created_at=created_at,
            project_id=DEFAULT_PROJECT_ID,
        )
    ]
