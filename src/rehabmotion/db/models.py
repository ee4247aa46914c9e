"""ORM models for persisted badge state.

One ``badge_records`` row per user holds the denormalized point/level summary;
``unlocked_badges`` keeps a full snapshot of each badge definition at unlock
time so stored badges survive later catalog edits.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rehabmotion.db.base import Base


class BadgeRecordRow(Base):
    """Denormalized badge summary: single row per user, O(1) reads."""

    __tablename__ = "badge_records"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    total_points: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    level: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    next_level_points: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="100")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    badges: Mapped[list[UnlockedBadgeRow]] = relationship(
        "UnlockedBadgeRow",
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="UnlockedBadgeRow.id",
        lazy="selectin",
    )


class UnlockedBadgeRow(Base):
    """Badges unlocked by users. UNIQUE(user_id, badge_id) prevents duplicates."""

    __tablename__ = "unlocked_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="unlocked_badges_user_id_badge_id_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("badge_records.user_id", ondelete="CASCADE"), nullable=False
    )
    badge_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(16), nullable=False)
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    tier: Mapped[str | None] = mapped_column(String(16), nullable=True)
    requirement_type: Mapped[str] = mapped_column(String(16), nullable=False)
    requirement: Mapped[float] = mapped_column(Float, nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, server_default="100")

    record: Mapped[BadgeRecordRow] = relationship("BadgeRecordRow", back_populates="badges")
