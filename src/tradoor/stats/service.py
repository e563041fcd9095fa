"""Platform-wide aggregate statistics (singleton row).

Incremental paths (new user, new transaction, points delta) go through
``increment_stats`` which issues ``col = col + n`` so concurrent trades never
lose updates. ``recalculate_stats`` is the full-rescan repair path.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.cache import get_cache
from tradoor.db.models import PlatformStats, Transaction, UserProfile
from tradoor.db.upsert import insert_if_absent
from tradoor.errors import ValidationFailed
from tradoor.live.channels import STATS_CHANNEL, publish_change
from tradoor.stats.schemas import PlatformStatsResponse

logger = structlog.get_logger()

STATS_ID = 1
DEFAULT_SUPPLY = 1_000_000.0
DEFAULT_CIRCULATING = 245_000.0
STATS_CACHE_KEY = "stats:current"

UPDATABLE_FIELDS = (
    "total_users",
    "total_transactions",
    "total_points",
    "ptradoor_supply",
    "ptradoor_circulating",
)


async def get_stats(db: AsyncSession) -> PlatformStats | None:
    """Fetch the singleton stats row, or None if it was never created."""
    result = await db.execute(
        select(PlatformStats)
        .where(PlatformStats.id == STATS_ID)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def ensure_stats(db: AsyncSession) -> PlatformStats:
    """Return the stats row, creating it with zeroed counters if absent."""
    stats = await get_stats(db)
    if stats is not None:
        return stats

    created = await insert_if_absent(db, PlatformStats, {
        "id": STATS_ID,
        "total_users": 0,
        "total_transactions": 0,
        "total_points": 0,
        "ptradoor_supply": DEFAULT_SUPPLY,
        "ptradoor_circulating": DEFAULT_CIRCULATING,
        "last_updated": datetime.now(timezone.utc),
    })
    if created:
        logger.info("platform_stats_initialized")

    stats = await get_stats(db)
    if stats is None:
        msg = "Failed to create platform stats"
        raise RuntimeError(msg)
    return stats


async def get_stats_snapshot(db: AsyncSession) -> PlatformStatsResponse:
    """Cache-fronted read of the aggregate record."""
    cache = get_cache()
    cached = cache.get(STATS_CACHE_KEY)
    if cached is not None:
        return cached

    stats = await ensure_stats(db)
    await db.commit()
    snapshot = PlatformStatsResponse.model_validate(stats)
    cache.set(STATS_CACHE_KEY, snapshot)
    return snapshot


def validate_stats_update(current: PlatformStats, partial: dict[str, Any]) -> dict[str, float]:
    """Validate a partial update against the current row.

    Raises ValidationFailed on the first violation; nothing is applied.
    """
    unknown = set(partial) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationFailed(f"Unknown stats fields: {', '.join(sorted(unknown))}")

    clean: dict[str, float] = {}
    for name, value in partial.items():
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValidationFailed(f"{name} must be a finite number")
        if value < 0:
            raise ValidationFailed(f"{name} cannot be negative")
        clean[name] = value

    supply = clean.get("ptradoor_supply", current.ptradoor_supply)
    circulating = clean.get("ptradoor_circulating", current.ptradoor_circulating)
    if circulating > supply:
        raise ValidationFailed("Circulating supply cannot exceed total supply")

    return clean


async def update_stats(db: AsyncSession, redis: object, partial: dict[str, Any]) -> PlatformStats:
    """Validate and merge a partial update onto a freshly read snapshot."""
    current = await ensure_stats(db)
    await db.refresh(current)
    try:
        clean = validate_stats_update(current, partial)
    except ValidationFailed:
        await db.rollback()
        logger.warning("platform_stats_update_rejected", fields=sorted(partial))
        raise

    for name, value in clean.items():
        setattr(current, name, value)
    current.last_updated = datetime.now(timezone.utc)

    await db.commit()
    get_cache().clear()
    await publish_change(redis, STATS_CHANNEL)
    return current


async def increment_stats(
    db: AsyncSession,
    users: int = 0,
    transactions: int = 0,
    points: int = 0,
) -> None:
    """Atomically bump the platform counters. The caller commits."""
    if not (users or transactions or points):
        return
    await ensure_stats(db)
    await db.execute(
        update(PlatformStats)
        .where(PlatformStats.id == STATS_ID)
        .values(
            total_users=PlatformStats.total_users + users,
            total_transactions=PlatformStats.total_transactions + transactions,
            total_points=PlatformStats.total_points + points,
            last_updated=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )


async def recalculate_stats(db: AsyncSession, redis: object) -> PlatformStats:
    """Full rescan: overwrite the counters from the profile and transaction tables."""
    total_users = (await db.execute(select(func.count()).select_from(UserProfile))).scalar_one()
    total_transactions = (await db.execute(select(func.count()).select_from(Transaction))).scalar_one()
    total_points = (
        await db.execute(select(func.coalesce(func.sum(UserProfile.total_points), 0)))
    ).scalar_one()

    logger.info(
        "platform_stats_recalculated",
        total_users=total_users,
        total_transactions=total_transactions,
        total_points=total_points,
    )

    return await update_stats(db, redis, {
        "total_users": int(total_users),
        "total_transactions": int(total_transactions),
        "total_points": int(total_points),
    })
