"""
User Record
===========

Signed-in identity for cloud sync, keyed by the Google account id.
Created on first sign-in; never deleted by the application.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from lifephysics.core.database.base import Base, utc_now


class UserRecord(Base):
    __tablename__ = "users"

    google_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        doc="Google account subject id",
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False)

    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    def __repr__(self) -> str:
        return f"<UserRecord(google_id={self.google_id!r}, email={self.email!r})>"
