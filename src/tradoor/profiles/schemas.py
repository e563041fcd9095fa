"""Pydantic models for profile endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    address: str
    fid: int | None = None
    username: str | None = None
    display_name: str | None = None
    pfp_url: str | None = None
    tier: str
    total_points: int
    current_rank: int
    total_transactions: int
    ptradoor_balance: float
    ptradoor_earned: float
    weekly_streak: int
    referrals: int
    achievements_count: int
    has_minted: bool
    initial: bool
    join_date: datetime | None = None
    last_active: datetime | None = None


class ProfileUpdate(BaseModel):
    """Client-writable profile fields. Anything else in the body is ignored."""

    fid: int | None = None
    username: str | None = Field(default=None, max_length=64)
    display_name: str | None = Field(default=None, max_length=128)
    pfp_url: str | None = None
    referrals: int | None = Field(default=None, ge=0)
    has_minted: bool | None = None


class TierProgressResponse(BaseModel):
    tier: str
    next_tier: str | None = None
    points: float
    points_to_next: float
    percentage: float


class UserAchievementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    achievement_id: str
    unlocked_at: datetime
    progress: float | None = None
