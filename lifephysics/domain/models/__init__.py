"""
Domain models package for Life Physics.

Rich domain models holding the progression rules. They are separate from the
SQLAlchemy records in ``lifephysics.database.models``; services convert
between the two.

- Task / Prerequisite: the task state machine
- ProgressionLedger: experience, level and coins
- AvatarWardrobe: cosmetic ownership
"""

from .base import (
    AggregateRoot,
    DomainEvent,
    DomainValidationError,
    Entity,
    validate_non_negative,
    validate_not_empty,
    validate_positive,
)
from .task import Difficulty, Prerequisite, Task, TaskStatus, derive_task_status
from .progression import ProgressionLedger
from .avatar import AVATAR_CATALOG, Avatar, AvatarWardrobe, get_avatar

__all__ = [
    # Base classes
    "Entity",
    "AggregateRoot",
    "DomainEvent",
    "DomainValidationError",
    # Validators
    "validate_positive",
    "validate_non_negative",
    "validate_not_empty",
    # Domain models
    "Task",
    "TaskStatus",
    "Difficulty",
    "Prerequisite",
    "derive_task_status",
    "ProgressionLedger",
    "Avatar",
    "AvatarWardrobe",
    "AVATAR_CATALOG",
    "get_avatar",
]
