"""
ORM base classes for Life Physics.

- ``Base``: declarative base shared by every record in
  ``lifephysics.database.models``
- ``TimestampMixin``: ``updated_at`` maintained on every write
- ``JSONType``: JSON column that becomes JSONB on PostgreSQL

Records are schema-only; all rules live in the domain layer.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
        doc="Last write (last-writer-wins marker)",
    )
