"""Pure point arithmetic: initial grant, per-trade points, bonuses.

Nothing here performs I/O and nothing here raises.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

# Initial grant (from historical Base activity)
POINTS_PER_TRANSACTION = 1
POINTS_PER_GWEI_GAS = 0.0001
POINTS_PER_ETH_VALUE = 10
MAX_INITIAL_POINTS = 1000
DEFAULT_INITIAL_POINTS = 10  # granted when the chain lookup is unavailable

WEI_PER_ETH = 10**18
WEI_PER_GWEI = 10**9

# Trading
BASE_POINTS_PER_TRADE = 5  # sqrt scaling factor
MINTING_MULTIPLIER = 3
MAX_POINTS_PER_TRADE = 1000

# Bonuses
POINTS_PER_PTRADOOR_HOLD = 0.1  # per token per day
STREAK_BONUS_POINTS = 50
STREAK_BONUS_EVERY = 7
STREAK_WINDOW_DAYS = 7  # whole days since the last activity


@dataclass(frozen=True)
class ChainTransaction:
    """One historical wallet transaction as returned by the chain lookup."""

    hash: str
    block_number: int
    from_address: str
    to_address: str
    value: int
    gas: int
    gas_price: int


@dataclass(frozen=True)
class PointBreakdown:
    total_transactions: int
    total_gas_cost: int
    total_value: int
    points: int
    transaction_points: int = 0
    gas_points: int = 0
    value_points: int = 0


def _finite_or_zero(value: float) -> float:
    if value is None or not math.isfinite(value):
        return 0.0
    return value


def initial_points(
    transaction_count: int,
    total_gas_cost_wei: int,
    total_value_wei: int,
    *,
    per_transaction: float = POINTS_PER_TRANSACTION,
    per_gwei_gas: float = POINTS_PER_GWEI_GAS,
    per_eth_value: float = POINTS_PER_ETH_VALUE,
    cap: int = MAX_INITIAL_POINTS,
) -> PointBreakdown:
    """Compute the one-time initial grant from historical chain activity."""
    transaction_points = max(0, transaction_count) * per_transaction
    gas_points = max(0, total_gas_cost_wei) / WEI_PER_GWEI * per_gwei_gas
    value_points = max(0, total_value_wei) / WEI_PER_ETH * per_eth_value

    total = min(transaction_points + gas_points + value_points, cap)

    return PointBreakdown(
        total_transactions=max(0, transaction_count),
        total_gas_cost=max(0, total_gas_cost_wei),
        total_value=max(0, total_value_wei),
        points=math.floor(total),
        transaction_points=math.floor(transaction_points),
        gas_points=math.floor(gas_points),
        value_points=math.floor(value_points),
    )


def initial_points_from_transactions(transactions: Iterable[ChainTransaction]) -> PointBreakdown:
    """Aggregate gas cost (gas x gasPrice) and value, then compute the grant."""
    count = 0
    gas_cost = 0
    value = 0
    for tx in transactions:
        count += 1
        gas_cost += tx.gas * tx.gas_price
        value += tx.value
    return initial_points(count, gas_cost, value)


def default_initial_points() -> PointBreakdown:
    return PointBreakdown(
        total_transactions=0,
        total_gas_cost=0,
        total_value=0,
        points=DEFAULT_INITIAL_POINTS,
        transaction_points=DEFAULT_INITIAL_POINTS,
    )


def trade_points(usd_amount: float, has_multiplier: bool) -> int:
    """Points for one trade with diminishing returns.

    floor(BASE * sqrt(usd)), tripled for minters, then capped. The cap is
    applied after the multiplier.
    """
    usd = max(0.0, _finite_or_zero(usd_amount))
    points = math.floor(BASE_POINTS_PER_TRADE * math.sqrt(usd))
    if has_multiplier:
        points *= MINTING_MULTIPLIER
    return max(0, min(points, MAX_POINTS_PER_TRADE))


def holding_bonus(balance: float) -> int:
    """Daily holding bonus for a pTradoor balance."""
    return max(0, math.floor(_finite_or_zero(balance) * POINTS_PER_PTRADOOR_HOLD))


def _as_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def streak_after(
    previous_streak: int,
    last_active: datetime | None,
    now: datetime | None = None,
) -> tuple[int, int]:
    """Return (new_streak, bonus_points) for activity at ``now``.

    A gap of at most 7 whole days (partial days dropped) extends the streak,
    anything longer starts over at 1. Every 7th consecutive value earns the bonus.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    if last_active is not None and (_as_utc(now) - _as_utc(last_active)).days <= STREAK_WINDOW_DAYS:
        streak = max(0, previous_streak) + 1
    else:
        streak = 1

    bonus = STREAK_BONUS_POINTS if streak % STREAK_BONUS_EVERY == 0 else 0
    return streak, bonus
