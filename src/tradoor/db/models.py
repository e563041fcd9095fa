"""ORM models for the points engine.

Tables are created by the Alembic migration ``001_points_tables``;
``tradoor.database.create_tables`` builds the same schema for tests.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from tradoor.db.base import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class UserProfile(Base):
    """One row per wallet address. ``initial`` flips false -> true exactly once."""

    __tablename__ = "user_profiles"

    address: Mapped[str] = mapped_column(String(64), primary_key=True)
    fid: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    username: Mapped[str | None] = mapped_column(String(64), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    pfp_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    tier: Mapped[str] = mapped_column(String(16), nullable=False, default="Bronze", server_default="Bronze")
    total_points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    current_rank: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_transactions: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    ptradoor_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")
    ptradoor_earned: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")
    weekly_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    referrals: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    achievements_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    has_minted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    initial: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    last_processed_block: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    join_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    last_active: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())


# ---------------------------------------------------------------------------
# Transactions (append-only)
# ---------------------------------------------------------------------------


class Transaction(Base):
    """Immutable record of a trade or bonus event."""

    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    user_address: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_profiles.address", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    price: Mapped[float | None] = mapped_column(Float, nullable=True)
    points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="completed")
    # NULLs are distinct, so only chain-observed transfers are deduplicated
    tx_hash: Mapped[str | None] = mapped_column(String(80), nullable=True, unique=True)
    tx_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------


class LeaderboardEntry(Base):
    """Denormalized per-user ranking row, kept in sync with the profile."""

    __tablename__ = "leaderboard_entries"

    user_address: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_profiles.address", ondelete="CASCADE"), primary_key=True
    )
    points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, index=True)
    rank: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tier: Mapped[str] = mapped_column(String(16), nullable=False, default="Bronze")
    transactions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ptradoor_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())


# ---------------------------------------------------------------------------
# Platform aggregates
# ---------------------------------------------------------------------------


class PlatformStats(Base):
    """Singleton aggregate row (id = 1)."""

    __tablename__ = "platform_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    total_users: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    total_transactions: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    total_points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    ptradoor_supply: Mapped[float] = mapped_column(Float, nullable=False, default=1_000_000.0)
    ptradoor_circulating: Mapped[float] = mapped_column(Float, nullable=False, default=245_000.0)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())


class Milestone(Base):
    """Platform-wide progress tracker, recomputed by admins."""

    __tablename__ = "milestones"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    target: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class Achievement(Base):
    """Achievement template: a threshold on one profile field plus a reward."""

    __tablename__ = "achievements"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    icon: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    rarity: Mapped[str] = mapped_column(String(16), nullable=False, default="common")
    requirement_type: Mapped[str] = mapped_column(String(16), nullable=False)
    requirement_value: Mapped[float] = mapped_column(Float, nullable=False)
    timeframe: Mapped[str] = mapped_column(String(16), nullable=False, default="all_time")
    points_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())


class UserAchievement(Base):
    """One-time unlock record. The composite primary key is the dedup guard."""

    __tablename__ = "user_achievements"

    user_address: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_profiles.address", ondelete="CASCADE"), primary_key=True
    )
    achievement_id: Mapped[str] = mapped_column(String(64), ForeignKey("achievements.id"), primary_key=True)
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    progress: Mapped[float | None] = mapped_column(Float, nullable=True)
