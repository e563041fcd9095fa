"""Pydantic response models for leaderboard endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class LeaderboardEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_address: str
    points: int
    rank: int
    tier: str
    transactions: int
    ptradoor_balance: float
    last_updated: datetime | None = None


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntryResponse]
    total: int


class UserRankResponse(BaseModel):
    address: str
    rank: int
    points: float
    total: int
    percentile: float


# ── Admin diagnostics ──


class MismatchedUser(BaseModel):
    address: str
    user_points: int
    leaderboard_points: int
    user_tier: str
    leaderboard_tier: str


class LeaderboardDiagnosis(BaseModel):
    total_users: int
    total_leaderboard_entries: int
    mismatched_users: list[MismatchedUser]
    missing_entries: list[str]


class RankingRecalculationResponse(BaseModel):
    ranked: int
