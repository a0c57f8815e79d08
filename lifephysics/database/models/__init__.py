"""
SQLAlchemy records for the cloud sync store.

Importing this package registers every table on ``Base.metadata``.
"""

from lifephysics.core.database.base import Base

from .progress import ProgressRecord
from .task import TaskRecord
from .user import UserRecord

__all__ = [
    "Base",
    "UserRecord",
    "TaskRecord",
    "ProgressRecord",
]
