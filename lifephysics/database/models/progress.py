"""
Progress Record
===============

One row per user: the progression ledger and avatar wardrobe, overwritten
as a whole on every sync (last writer wins).
"""

from __future__ import annotations

from sqlalchemy import BigInteger, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from lifephysics.core.database.base import Base, JSONType, TimestampMixin


class ProgressRecord(Base, TimestampMixin):
    __tablename__ = "progress"

    user_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("users.google_id", ondelete="CASCADE"),
        primary_key=True,
    )

    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    experience: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    coins: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    owned_avatar_ids: Mapped[list[str]] = mapped_column(
        JSONType,
        nullable=False,
        default=lambda: ["default"],
    )

    selected_avatar_id: Mapped[str] = mapped_column(String(64), nullable=False, default="default")

    def __repr__(self) -> str:
        return (
            f"<ProgressRecord(user_id={self.user_id!r}, level={self.level}, "
            f"experience={self.experience}, coins={self.coins})>"
        )
