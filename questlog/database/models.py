"""
questlog.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- users            — Account rows (owned by the auth layer, read here)
- member_profiles  — Authoritative XP/level per user
- blobs            — Key → serialized collection, for the database blob backend
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all questlog ORM models."""


# ---------------------------------------------------------------------------
# Users — one row per account
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(100), default=None)
    avatar: Mapped[str | None] = mapped_column(String(500), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    profile: Mapped[MemberProfile | None] = relationship(
        back_populates="user", cascade="all, delete-orphan", uselist=False
    )


# ---------------------------------------------------------------------------
# Member profiles — the point of truth for XP
# ---------------------------------------------------------------------------
class MemberProfile(Base):
    __tablename__ = "member_profiles"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    xp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped[User] = relationship(back_populates="profile")


# ---------------------------------------------------------------------------
# Blobs — whole-collection payloads
# ---------------------------------------------------------------------------
class BlobRecord(Base):
    __tablename__ = "blobs"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
