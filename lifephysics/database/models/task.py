"""
Task Record
===========

Schema-only copy of a ``Task`` aggregate for cloud sync.

Keyed by ``(user_id, id)``: task ids are generated on devices, and the seed
task id is shared by every new user. Prerequisites are stored inline as a
JSON list of ``Prerequisite.to_dict()`` entries.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lifephysics.core.database.base import Base, JSONType, TimestampMixin, utc_now


class TaskRecord(Base, TimestampMixin):
    __tablename__ = "tasks"
    __table_args__ = (Index("ix_tasks_user_status", "user_id", "status"),)

    user_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("users.google_id", ondelete="CASCADE"),
        primary_key=True,
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    project_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    category: Mapped[str] = mapped_column(String(50), nullable=False, default="Habits")

    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")

    difficulty: Mapped[str] = mapped_column(String(50), nullable=False)

    prerequisites: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<TaskRecord(user_id={self.user_id!r}, id={self.id!r}, status={self.status!r})>"
