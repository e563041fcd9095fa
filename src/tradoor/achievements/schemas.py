"""Pydantic models for achievement endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

REQUIREMENT_TYPE_PATTERN = "^(transactions|points|streak|balance|referrals)$"
RARITY_PATTERN = "^(common|rare|epic|legendary)$"


class AchievementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    icon: str
    rarity: str
    requirement_type: str
    requirement_value: float
    timeframe: str
    points_reward: int
    is_active: bool


class AchievementCreate(BaseModel):
    id: str = Field(pattern="^[a-z0-9_]{1,64}$")
    name: str = Field(min_length=1, max_length=128)
    description: str = ""
    icon: str = Field(default="", max_length=16)
    rarity: str = Field(default="common", pattern=RARITY_PATTERN)
    requirement_type: str = Field(pattern=REQUIREMENT_TYPE_PATTERN)
    requirement_value: float = Field(gt=0)
    timeframe: str = Field(default="all_time", pattern="^(all_time|daily)$")
    points_reward: int = Field(default=0, ge=0)
    sort_order: int = 0


class AchievementUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = None
    icon: str | None = Field(default=None, max_length=16)
    rarity: str | None = Field(default=None, pattern=RARITY_PATTERN)
    requirement_type: str | None = Field(default=None, pattern=REQUIREMENT_TYPE_PATTERN)
    requirement_value: float | None = Field(default=None, gt=0)
    timeframe: str | None = Field(default=None, pattern="^(all_time|daily)$")
    points_reward: int | None = Field(default=None, ge=0)
    is_active: bool | None = None
    sort_order: int | None = None


class AchievementProgressResponse(BaseModel):
    achievement_id: str
    name: str
    description: str
    icon: str
    rarity: str
    progress: float
    target: float
    percentage: float
    unlocked: bool
    unlocked_at: datetime | None = None
    points_reward: int


class AchievementSummaryResponse(BaseModel):
    total_achievements: int
    unlocked_achievements: int
    completion_percentage: float
    total_points_from_achievements: int
    achievements: list[AchievementProgressResponse]


class AchievementCheckResponse(BaseModel):
    unlocked: list[str]
