"""Leaderboard maintenance: denormalized entries, dense ranks, Redis mirror.

The SQL table is the source of truth for ranks exposed by the API. Every
upsert is also written to the ``leaderboard:points`` sorted set so single
rank lookups do not scan the table.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.cache import get_cache
from tradoor.db.models import LeaderboardEntry, UserProfile
from tradoor.db.upsert import insert_if_absent
from tradoor.leaderboard.schemas import (
    LeaderboardDiagnosis,
    LeaderboardEntryResponse,
    MismatchedUser,
)
from tradoor.live.channels import LEADERBOARD_CHANNEL, publish_change

logger = structlog.get_logger()

LEADERBOARD_KEY = "leaderboard:points"
TOP_CACHE_KEY = "leaderboard:top:{limit}"
DEFAULT_TOP_LIMIT = 100


async def get_entry(db: AsyncSession, address: str) -> LeaderboardEntry | None:
    result = await db.execute(
        select(LeaderboardEntry)
        .where(LeaderboardEntry.user_address == address)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _entry_values(profile: UserProfile, points: int, tier: str, now: datetime) -> dict:
    return {
        "points": points,
        "tier": tier,
        "transactions": profile.total_transactions,
        "ptradoor_balance": profile.ptradoor_balance,
        "last_updated": now,
    }


async def _mirror(redis: object, scores: dict[str, float]) -> None:
    """Write scores to the sorted-set mirror. Failures only log."""
    if redis is None or not scores:
        return
    try:
        await redis.zadd(LEADERBOARD_KEY, scores)  # type: ignore[union-attr]
    except Exception:
        logger.warning("leaderboard_mirror_failed", count=len(scores), exc_info=True)


async def upsert_entry(
    db: AsyncSession,
    redis: object,
    address: str,
    points: int,
    tier: str,
) -> LeaderboardEntry | None:
    """Write the user's entry (rank 0 until ranked) and recalculate all ranks.

    A missing profile is a logged no-op.
    """
    result = await db.execute(
        select(UserProfile)
        .where(UserProfile.address == address)
        .execution_options(populate_existing=True)
    )
    profile = result.scalar_one_or_none()
    if profile is None:
        logger.warning("leaderboard_upsert_missing_profile", address=address)
        return None

    now = datetime.now(timezone.utc)
    values = _entry_values(profile, points, tier, now)
    created = await insert_if_absent(db, LeaderboardEntry, {"user_address": address, "rank": 0, **values})
    if not created:
        await db.execute(
            update(LeaderboardEntry)
            .where(LeaderboardEntry.user_address == address)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    await recalculate_rankings(db, commit=False)
    await db.commit()

    await _mirror(redis, {address: float(points)})
    get_cache().clear()
    await publish_change(redis, LEADERBOARD_CHANNEL, {"address": address})

    return await get_entry(db, address)


async def recalculate_rankings(db: AsyncSession, *, commit: bool = True) -> int:
    """Assign dense ranks 1..N by points descending, ties broken by address.

    Entries and the profiles' ``current_rank`` are each written with one
    batched statement. Returns the number of ranked entries.
    """
    result = await db.execute(
        select(LeaderboardEntry.user_address)
        .order_by(LeaderboardEntry.points.desc(), LeaderboardEntry.user_address.asc())
    )
    addresses = list(result.scalars())
    if not addresses:
        return 0

    await db.execute(
        update(LeaderboardEntry),
        [{"user_address": addr, "rank": position + 1} for position, addr in enumerate(addresses)],
    )
    await db.execute(
        update(UserProfile),
        [{"address": addr, "current_rank": position + 1} for position, addr in enumerate(addresses)],
    )

    if commit:
        await db.commit()
        get_cache().clear()
    logger.debug("leaderboard_ranked", count=len(addresses))
    return len(addresses)


async def ensure_entry(db: AsyncSession, redis: object, address: str) -> LeaderboardEntry | None:
    """Read-repair: create or refresh the entry when it drifted from the profile."""
    profile = await db.get(UserProfile, address, populate_existing=True)
    if profile is None:
        return None

    entry = await get_entry(db, address)
    if entry is not None and entry.points == profile.total_points and entry.tier == profile.tier:
        return entry

    logger.info(
        "leaderboard_entry_repaired",
        address=address,
        missing=entry is None,
    )
    return await upsert_entry(db, redis, address, profile.total_points, profile.tier)


async def sync_all(db: AsyncSession, redis: object) -> int:
    """Rewrite every entry from its profile, rebuild the mirror, then rank."""
    profiles = list((await db.execute(select(UserProfile))).scalars())
    now = datetime.now(timezone.utc)

    for profile in profiles:
        values = _entry_values(profile, profile.total_points, profile.tier, now)
        created = await insert_if_absent(
            db, LeaderboardEntry, {"user_address": profile.address, "rank": 0, **values}
        )
        if not created:
            await db.execute(
                update(LeaderboardEntry)
                .where(LeaderboardEntry.user_address == profile.address)
                .values(**values)
                .execution_options(synchronize_session=False)
            )

    ranked = await recalculate_rankings(db, commit=False)
    await db.commit()

    if redis is not None:
        try:
            pipe = redis.pipeline()  # type: ignore[union-attr]
            pipe.delete(LEADERBOARD_KEY)
            for profile in profiles:
                pipe.zadd(LEADERBOARD_KEY, {profile.address: float(profile.total_points)})
            await pipe.execute()
        except Exception:
            logger.warning("leaderboard_mirror_rebuild_failed", exc_info=True)

    get_cache().clear()
    await publish_change(redis, LEADERBOARD_CHANNEL)
    logger.info("leaderboard_synced", profiles=len(profiles), ranked=ranked)
    return len(profiles)


async def diagnose(db: AsyncSession) -> LeaderboardDiagnosis:
    """Compare profiles with their entries. Read-only."""
    total_users = (await db.execute(select(func.count()).select_from(UserProfile))).scalar_one()
    total_entries = (await db.execute(select(func.count()).select_from(LeaderboardEntry))).scalar_one()

    result = await db.execute(
        select(UserProfile, LeaderboardEntry)
        .outerjoin(LeaderboardEntry, LeaderboardEntry.user_address == UserProfile.address)
        .order_by(UserProfile.address)
    )

    mismatched: list[MismatchedUser] = []
    missing: list[str] = []
    for profile, entry in result.all():
        if entry is None:
            missing.append(profile.address)
        elif entry.points != profile.total_points or entry.tier != profile.tier:
            mismatched.append(MismatchedUser(
                address=profile.address,
                user_points=profile.total_points,
                leaderboard_points=entry.points,
                user_tier=profile.tier,
                leaderboard_tier=entry.tier,
            ))

    return LeaderboardDiagnosis(
        total_users=total_users,
        total_leaderboard_entries=total_entries,
        mismatched_users=mismatched,
        missing_entries=missing,
    )


async def get_top(db: AsyncSession, limit: int = DEFAULT_TOP_LIMIT) -> list[LeaderboardEntry]:
    result = await db.execute(
        select(LeaderboardEntry)
        .order_by(LeaderboardEntry.points.desc(), LeaderboardEntry.user_address.asc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars())


async def get_top_snapshot(db: AsyncSession, limit: int = DEFAULT_TOP_LIMIT) -> list[LeaderboardEntryResponse]:
    """Cache-fronted top-N read."""
    cache = get_cache()
    key = TOP_CACHE_KEY.format(limit=limit)
    cached = cache.get(key)
    if cached is not None:
        return cached

    entries = [LeaderboardEntryResponse.model_validate(e) for e in await get_top(db, limit)]
    cache.set(key, entries)
    return entries


async def get_user_rank(redis: object, address: str) -> dict | None:
    """Rank lookup against the sorted-set mirror, or None when not mirrored.

    Equal scores are ordered by the sorted set itself, so ties may differ
    from the dense SQL rank.
    """
    if redis is None:
        return None
    try:
        rank = await redis.zrevrank(LEADERBOARD_KEY, address)  # type: ignore[union-attr]
        if rank is None:
            return None
        score = await redis.zscore(LEADERBOARD_KEY, address)  # type: ignore[union-attr]
        total = await redis.zcard(LEADERBOARD_KEY)  # type: ignore[union-attr]
    except Exception:
        logger.warning("leaderboard_rank_lookup_failed", address=address, exc_info=True)
        return None

    return {
        "address": address,
        "rank": rank + 1,
        "points": float(score or 0),
        "total": total,
        "percentile": round(100 - ((rank + 1) / total * 100), 2) if total > 0 else 0,
    }
