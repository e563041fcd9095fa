"""Trading orchestrator: one trade through points, ledger, balance, streak, achievements.

Each step commits on its own. A failure stops forward progress and is
reported on the result; earlier committed steps stay committed and the
repair paths (``recalculate_stats``, ``sync_all``) reconcile aggregates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.achievements.service import check_and_award
from tradoor.config import get_settings
from tradoor.db.models import Transaction, UserProfile
from tradoor.errors import AlreadyProcessed, PointsError, ProfileNotFound, ValidationFailed
from tradoor.leaderboard.service import upsert_entry
from tradoor.points.calculator import holding_bonus, streak_after, trade_points
from tradoor.profiles.service import get_profile, record_streak, update_balance, update_points
from tradoor.transactions.service import TransactionType, add_transaction

logger = structlog.get_logger()

TRADE_SIDES = ("buy", "sell")


class TradeState(str, Enum):
    RECEIVED = "received"
    POINTS_COMPUTED = "points_computed"
    TRANSACTION_RECORDED = "transaction_recorded"
    BALANCE_UPDATED = "balance_updated"
    STATS_UPDATED = "stats_updated"
    LEADERBOARD_UPDATED = "leaderboard_updated"
    ACHIEVEMENTS_CHECKED = "achievements_checked"
    DONE = "done"
    FAILED = "failed"


@dataclass
class TradeResult:
    success: bool
    state: TradeState
    transaction_id: str | None = None
    points_earned: int = 0
    new_balance: float = 0.0
    tier: str | None = None
    achievements_unlocked: list[str] = field(default_factory=list)
    error: str | None = None
    tx_hash: str | None = None
    streak_bonus: int = 0
    failed_at: TradeState | None = None


@dataclass
class TradeStats:
    total_trades: int
    total_volume: float
    average_trade_size: float
    points_earned: int
    current_streak: int


@dataclass
class DailyBonusResult:
    processed: int = 0
    awarded: int = 0
    total_points: int = 0
    errors: list[str] = field(default_factory=list)


def _trade_metadata(usd_amount: float, has_minted: bool) -> dict:
    settings = get_settings()
    return {
        "chain_id": settings.chain_id,
        "contract_address": settings.ptradoor_token_address,
        "trade_type": "dynamic_dollar",
        "usd_amount": usd_amount,
        "has_minted": has_minted,
    }


async def execute_trade(
    db: AsyncSession,
    redis: object,
    address: str,
    side: str,
    usd_amount: float,
    tx_hash: str | None = None,
    oracle: object | None = None,
) -> TradeResult:
    """Run one trade. Never raises; failures come back on the result."""
    result = TradeResult(success=False, state=TradeState.RECEIVED, tx_hash=tx_hash)
    log = logger.bind(address=address, side=side, tx_hash=tx_hash)

    try:
        if side not in TRADE_SIDES:
            raise ValidationFailed(f"Unknown trade side: {side}")

        profile = await get_profile(db, address)
        if profile is None:
            raise ProfileNotFound(address)
        # Later reads refresh this instance, so keep the values the streak needs
        has_minted = profile.has_minted
        previous_streak = profile.weekly_streak
        last_active = profile.last_active

        points = trade_points(usd_amount, has_minted)
        result.state = TradeState.POINTS_COMPUTED

        if oracle is None:
            from tradoor.chain.price import get_price_oracle
            oracle = get_price_oracle()
        token_amount = round(await oracle.usd_to_tokens(max(0.0, usd_amount)), 2)  # type: ignore[union-attr]

        transaction = await add_transaction(
            db,
            redis,
            user_address=address,
            type=side,
            amount=token_amount,
            price=usd_amount,
            points=points,
            tx_hash=tx_hash,
            metadata=_trade_metadata(usd_amount, has_minted),
        )
        result.transaction_id = transaction.id
        result.state = TradeState.TRANSACTION_RECORDED

        result.new_balance = await update_balance(db, redis, address, token_amount, side)
        result.state = TradeState.BALANCE_UPDATED

        updated = await update_points(db, redis, address, points, refresh_leaderboard=False)
        result.points_earned = points
        result.tier = updated.tier
        result.state = TradeState.STATS_UPDATED

        await upsert_entry(db, redis, address, updated.total_points, updated.tier)
        result.state = TradeState.LEADERBOARD_UPDATED

        streak, bonus = streak_after(previous_streak, last_active)
        await record_streak(db, address, streak)
        if bonus:
            await add_transaction(
                db,
                redis,
                user_address=address,
                type=TransactionType.STREAK_BONUS,
                amount=bonus,
                points=bonus,
                metadata={"chain_id": get_settings().chain_id, "streak": streak},
            )
            updated = await update_points(db, redis, address, bonus)
            result.streak_bonus = bonus
            result.tier = updated.tier
            log.info("streak_bonus_awarded", streak=streak, bonus=bonus)

        result.achievements_unlocked = await check_and_award(db, redis, address)
        result.state = TradeState.ACHIEVEMENTS_CHECKED

        final = await get_profile(db, address)
        if final is not None:
            result.tier = final.tier
            result.new_balance = final.ptradoor_balance
    except PointsError as exc:
        return _failed(result, exc.message, log)
    except SQLAlchemyError as exc:
        await db.rollback()
        log.exception("trade_store_error")
        return _failed(result, f"Store unavailable: {exc.__class__.__name__}", log)

    result.success = True
    result.state = TradeState.DONE
    log.info(
        "trade_executed",
        points=result.points_earned,
        streak_bonus=result.streak_bonus,
        tier=result.tier,
        achievements=result.achievements_unlocked,
    )
    return result


def _failed(result: TradeResult, error: str, log: structlog.stdlib.BoundLogger) -> TradeResult:
    result.failed_at = result.state
    result.state = TradeState.FAILED
    result.success = False
    result.error = error
    log.warning("trade_failed", failed_at=result.failed_at.value, error=error)
    return result


async def get_trade_stats(db: AsyncSession, address: str) -> TradeStats:
    trades = await db.execute(
        select(func.count(), func.coalesce(func.sum(Transaction.amount), 0.0))
        .where(
            Transaction.user_address == address,
            Transaction.type.in_([TransactionType.BUY.value, TransactionType.SELL.value]),
        )
    )
    total_trades, total_volume = trades.one()
    points_earned = (
        await db.execute(
            select(func.coalesce(func.sum(Transaction.points), 0)).where(Transaction.user_address == address)
        )
    ).scalar_one()
    profile = await get_profile(db, address)

    return TradeStats(
        total_trades=total_trades,
        total_volume=float(total_volume),
        average_trade_size=float(total_volume) / total_trades if total_trades else 0.0,
        points_earned=int(points_earned),
        current_streak=profile.weekly_streak if profile else 0,
    )


async def award_holding_bonus(
    db: AsyncSession,
    redis: object,
    address: str,
    day: datetime | None = None,
) -> int:
    """Credit the daily holding bonus once per address per UTC day. Returns the points."""
    profile = await get_profile(db, address)
    if profile is None:
        raise ProfileNotFound(address)

    bonus = holding_bonus(profile.ptradoor_balance)
    if bonus <= 0:
        return 0

    day = day or datetime.now(timezone.utc)
    try:
        await add_transaction(
            db,
            redis,
            user_address=address,
            type=TransactionType.BASE_TRANSACTION,
            amount=bonus,
            points=bonus,
            tx_hash=f"holding:{day:%Y-%m-%d}:{address}",
            metadata={"chain_id": get_settings().chain_id, "bonus_type": "holding"},
        )
    except AlreadyProcessed:
        logger.debug("holding_bonus_already_awarded", address=address, day=f"{day:%Y-%m-%d}")
        return 0

    await update_points(db, redis, address, bonus)
    return bonus


async def distribute_daily_bonuses(db: AsyncSession, redis: object) -> DailyBonusResult:
    """Award the holding bonus to every profile with a positive balance."""
    result = DailyBonusResult()
    day = datetime.now(timezone.utc)
    addresses = list((await db.execute(
        select(UserProfile.address)
        .where(UserProfile.ptradoor_balance > 0)
        .order_by(UserProfile.address)
    )).scalars())

    for address in addresses:
        result.processed += 1
        try:
            points = await award_holding_bonus(db, redis, address, day)
        except (PointsError, SQLAlchemyError) as exc:
            await db.rollback()
            result.errors.append(f"{address}: {exc}")
            logger.warning("holding_bonus_failed", address=address, error=str(exc))
            continue
        if points:
            result.awarded += 1
            result.total_points += points

    logger.info(
        "daily_bonuses_distributed",
        processed=result.processed,
        awarded=result.awarded,
        total_points=result.total_points,
        errors=len(result.errors),
    )
    return result
