"""
Database subsystem for Life Physics.

Async SQLAlchemy engine and session management for the cloud sync store,
plus the ORM base classes used by ``lifephysics.database.models``.
"""

from lifephysics.core.database.base import Base, JSONType, TimestampMixin, utc_now
from lifephysics.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "JSONType",
    "TimestampMixin",
    "utc_now",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
