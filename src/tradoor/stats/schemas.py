"""Pydantic models for platform stats and milestones."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PlatformStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_users: int
    total_transactions: int
    total_points: int
    ptradoor_supply: float
    ptradoor_circulating: float
    last_updated: datetime | None = None


class PlatformStatsUpdate(BaseModel):
    total_users: int | None = None
    total_transactions: int | None = None
    total_points: int | None = None
    ptradoor_supply: float | None = None
    ptradoor_circulating: float | None = None


class MilestoneResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    target: int
    current: int
    completed: bool
    type: str
    created_at: datetime | None = None


class MilestoneCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    target: int = Field(gt=0)
    type: str = Field(pattern="^(users|transactions|points)$")
    current: int = 0
    completed: bool = False


class MilestoneUpdate(BaseModel):
    name: str | None = None
    target: int | None = Field(default=None, gt=0)
    current: int | None = Field(default=None, ge=0)
    completed: bool | None = None
