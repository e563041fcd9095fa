"""Pydantic models for trading endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TradeRequest(BaseModel):
    address: str = Field(min_length=1, max_length=64)
    side: str = Field(pattern="^(buy|sell)$")
    usd_amount: float = Field(ge=0, allow_inf_nan=False)
    tx_hash: str | None = Field(default=None, max_length=80)


class TradeResultResponse(BaseModel):
    success: bool
    state: str
    transaction_id: str | None = None
    points_earned: int
    new_balance: float
    tier: str | None = None
    achievements_unlocked: list[str]
    error: str | None = None
    tx_hash: str | None = None
    streak_bonus: int = 0


class TradeStatsResponse(BaseModel):
    total_trades: int
    total_volume: float
    average_trade_size: float
    points_earned: int
    current_streak: int


class PointsEstimateResponse(BaseModel):
    usd_amount: float
    has_multiplier: bool
    points: int
