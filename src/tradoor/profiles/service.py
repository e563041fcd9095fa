"""Profile store adapter: reads, first-touch initial grant, point updates.

The one-time initial grant is claimed with a conditional write
(``UPDATE ... WHERE initial = false``); only the caller whose claim
matched a row credits the platform totals and the leaderboard.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.cache import get_cache
from tradoor.db.models import UserAchievement, UserProfile
from tradoor.db.upsert import insert_if_absent
from tradoor.errors import ProfileNotFound, UpstreamUnavailable, ValidationFailed
from tradoor.leaderboard.service import upsert_entry
from tradoor.live.channels import profile_channel, publish_change
from tradoor.points.calculator import (
    PointBreakdown,
    default_initial_points,
    initial_points_from_transactions,
)
from tradoor.points.tiers import Tier, resolve_tier
from tradoor.profiles.schemas import ProfileResponse
from tradoor.stats.service import increment_stats

logger = structlog.get_logger()

PROFILE_CACHE_KEY = "profile:{address}"

# Fields a client may write. Points, tier, balances, counters, rank, the
# initial flag and timestamps are owned by the server.
CLIENT_FIELDS = frozenset({
    "fid",
    "username",
    "display_name",
    "pfp_url",
    "referrals",
    "has_minted",
})


@dataclass(frozen=True)
class IdentityContext:
    """Social identity supplied by the mini-app host."""

    fid: int | None = None
    username: str | None = None
    display_name: str | None = None
    pfp_url: str | None = None

    def as_fields(self) -> dict[str, Any]:
        return {
            name: value
            for name, value in (
                ("fid", self.fid),
                ("username", self.username),
                ("display_name", self.display_name),
                ("pfp_url", self.pfp_url),
            )
            if value is not None
        }


def sanitize_update(update_fields: dict[str, Any]) -> dict[str, Any]:
    """Drop server-owned and unknown fields from a client update."""
    stripped = sorted(set(update_fields) - CLIENT_FIELDS)
    if stripped:
        logger.debug("profile_update_fields_stripped", fields=stripped)
    return {k: v for k, v in update_fields.items() if k in CLIENT_FIELDS and v is not None}


async def get_profile(db: AsyncSession, address: str) -> UserProfile | None:
    result = await db.execute(
        select(UserProfile)
        .where(UserProfile.address == address)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_profile_snapshot(db: AsyncSession, address: str) -> ProfileResponse | None:
    """Cache-fronted profile read."""
    cache = get_cache()
    key = PROFILE_CACHE_KEY.format(address=address)
    cached = cache.get(key)
    if cached is not None:
        return cached

    profile = await get_profile(db, address)
    if profile is None:
        return None
    snapshot = ProfileResponse.model_validate(profile)
    cache.set(key, snapshot)
    return snapshot


async def _lookup_initial_grant(chain: object, address: str) -> PointBreakdown:
    """Grant from historical chain activity, or the default grant on failure."""
    try:
        transactions = await chain.get_wallet_transactions(address)  # type: ignore[union-attr]
    except UpstreamUnavailable as exc:
        breakdown = default_initial_points()
        logger.warning(
            "initial_points_lookup_failed",
            address=address,
            error=exc.message,
            default_points=breakdown.points,
        )
        return breakdown
    return initial_points_from_transactions(transactions)


async def _changed(redis: object, address: str) -> None:
    get_cache().clear()
    await publish_change(redis, profile_channel(address), {"address": address})


async def upsert_profile(
    db: AsyncSession,
    redis: object,
    address: str,
    update_fields: dict[str, Any] | None = None,
    identity: IdentityContext | None = None,
    chain: object | None = None,
) -> UserProfile:
    """Create or update a profile, running the initial grant at most once."""
    fields = {**(identity.as_fields() if identity else {}), **sanitize_update(update_fields or {})}
    now = datetime.now(timezone.utc)

    profile = await get_profile(db, address)
    if profile is None or not profile.initial:
        if chain is None:
            from tradoor.chain.client import get_chain_client
            chain = get_chain_client()
        breakdown = await _lookup_initial_grant(chain, address)
        tier = resolve_tier(breakdown.points)

        created = await insert_if_absent(db, UserProfile, {
            "address": address,
            "tier": Tier.BRONZE.value,
            "initial": False,
            "join_date": now,
            "last_active": now,
            "created_at": now,
            "updated_at": now,
            **fields,
        })

        # Legacy rows may already hold points; the grant replaces them
        previous_points = (
            await db.execute(select(UserProfile.total_points).where(UserProfile.address == address))
        ).scalar_one()

        claim = await db.execute(
            update(UserProfile)
            .where(UserProfile.address == address, UserProfile.initial.is_(False))
            .values(
                initial=True,
                total_points=breakdown.points,
                tier=tier,
                total_transactions=breakdown.total_transactions,
                last_active=now,
                updated_at=now,
                **fields,
            )
            .execution_options(synchronize_session=False)
        )
        claimed = claim.rowcount == 1

        await increment_stats(
            db,
            users=1 if created else 0,
            points=breakdown.points - previous_points if claimed else 0,
        )
        await db.commit()

        if claimed:
            logger.info(
                "initial_points_granted",
                address=address,
                points=breakdown.points,
                transactions=breakdown.total_transactions,
                gas_points=breakdown.gas_points,
                value_points=breakdown.value_points,
                created=created,
            )
            await upsert_entry(db, redis, address, breakdown.points, tier)
        elif fields:
            # Lost the race: another request initialized the profile
            await _apply_fields(db, address, fields, now)
    else:
        await _apply_fields(db, address, fields, now)

    await _changed(redis, address)
    profile = await get_profile(db, address)
    if profile is None:
        raise ProfileNotFound(address)
    return profile


async def _apply_fields(db: AsyncSession, address: str, fields: dict[str, Any], now: datetime) -> None:
    await db.execute(
        update(UserProfile)
        .where(UserProfile.address == address)
        .values(last_active=now, updated_at=now, **fields)
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def update_points(
    db: AsyncSession,
    redis: object,
    address: str,
    delta: int,
    *,
    refresh_leaderboard: bool = True,
) -> UserProfile:
    """Add ``delta`` points, recompute the tier and refresh stats and leaderboard.

    With ``refresh_leaderboard=False`` the profile and stats are committed and
    the caller writes the leaderboard entry itself.

    Raises ProfileNotFound if there is no profile and ValidationFailed if the
    total would go negative.
    """
    result = await db.execute(
        select(UserProfile)
        .where(UserProfile.address == address)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    profile = result.scalar_one_or_none()
    if profile is None:
        await db.rollback()
        raise ProfileNotFound(address)

    new_total = profile.total_points + delta
    if new_total < 0:
        await db.rollback()
        raise ValidationFailed(f"Points for {address} cannot go negative ({new_total})")

    old_tier = profile.tier
    profile.total_points = new_total
    profile.tier = resolve_tier(new_total)
    profile.updated_at = datetime.now(timezone.utc)
    await db.flush()

    await increment_stats(db, points=delta)
    if refresh_leaderboard:
        await upsert_entry(db, redis, address, new_total, profile.tier)
    else:
        await db.commit()

    if profile.tier != old_tier:
        logger.info("tier_changed", address=address, old_tier=old_tier, new_tier=profile.tier)

    await _changed(redis, address)
    # Re-read so current_rank reflects the recalculated ranking
    refreshed = await get_profile(db, address)
    return refreshed if refreshed is not None else profile


async def update_balance(
    db: AsyncSession,
    redis: object,
    address: str,
    token_amount: float,
    side: str,
) -> float:
    """Apply a trade to the token balance. Buys also count as earned tokens.

    A sell never takes the balance below zero.
    """
    result = await db.execute(
        select(UserProfile)
        .where(UserProfile.address == address)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    profile = result.scalar_one_or_none()
    if profile is None:
        await db.rollback()
        raise ProfileNotFound(address)

    amount = max(0.0, token_amount)
    if side == "buy":
        profile.ptradoor_balance += amount
        profile.ptradoor_earned += amount
    elif side == "sell":
        profile.ptradoor_balance = max(0.0, profile.ptradoor_balance - amount)
    else:
        await db.rollback()
        raise ValidationFailed(f"Unknown trade side: {side}")
    profile.updated_at = datetime.now(timezone.utc)

    new_balance = profile.ptradoor_balance
    await db.commit()
    await _changed(redis, address)
    return new_balance


async def record_streak(db: AsyncSession, address: str, streak: int) -> None:
    await db.execute(
        update(UserProfile)
        .where(UserProfile.address == address)
        .values(weekly_streak=max(0, streak), updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    get_cache().clear()


async def set_last_processed_block(db: AsyncSession, address: str, block_number: int) -> None:
    await db.execute(
        update(UserProfile)
        .where(UserProfile.address == address)
        .values(last_processed_block=block_number)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    get_cache().clear()


async def get_user_achievements(db: AsyncSession, address: str) -> list[UserAchievement]:
    result = await db.execute(
        select(UserAchievement)
        .where(UserAchievement.user_address == address)
        .order_by(UserAchievement.unlocked_at.desc())
    )
    return list(result.scalars())
