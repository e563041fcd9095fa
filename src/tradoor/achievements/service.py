"""Achievement engine: threshold requirements over profile counters.

A ``user_achievements`` row is the only record of an unlock; its composite
primary key makes every award exactly-once, even when two checks for the
same user race.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.achievements.schemas import AchievementProgressResponse, AchievementSummaryResponse
from tradoor.cache import get_cache
from tradoor.db.models import Achievement, Transaction, UserAchievement, UserProfile
from tradoor.db.upsert import insert_if_absent
from tradoor.errors import NotFound, ProfileNotFound, ValidationFailed
from tradoor.leaderboard.service import upsert_entry
from tradoor.live.channels import profile_channel, publish_change
from tradoor.points.tiers import resolve_tier
from tradoor.profiles.service import get_profile
from tradoor.stats.service import increment_stats

logger = logging.getLogger(__name__)


class RequirementType(str, Enum):
    TRANSACTIONS = "transactions"
    POINTS = "points"
    STREAK = "streak"
    BALANCE = "balance"
    REFERRALS = "referrals"


# Every requirement kind compares one profile counter against its threshold
_PROFILE_FIELD: dict[RequirementType, str] = {
    RequirementType.TRANSACTIONS: "total_transactions",
    RequirementType.POINTS: "total_points",
    RequirementType.STREAK: "weekly_streak",
    RequirementType.BALANCE: "ptradoor_balance",
    RequirementType.REFERRALS: "referrals",
}

DAILY = "daily"


@dataclass(frozen=True)
class Requirement:
    kind: RequirementType
    threshold: float
    timeframe: str = "all_time"

    @classmethod
    def from_achievement(cls, achievement: Achievement) -> Requirement:
        try:
            kind = RequirementType(achievement.requirement_type)
        except ValueError:
            raise ValidationFailed(
                f"Achievement {achievement.id} has unknown requirement type "
                f"{achievement.requirement_type!r}"
            ) from None
        return cls(kind=kind, threshold=achievement.requirement_value, timeframe=achievement.timeframe)

    def progress(self, profile: UserProfile, daily_transactions: int = 0) -> float:
        if self.kind is RequirementType.TRANSACTIONS and self.timeframe == DAILY:
            return daily_transactions
        return float(getattr(profile, _PROFILE_FIELD[self.kind]) or 0)

    def is_met(self, profile: UserProfile, daily_transactions: int = 0) -> bool:
        return self.progress(profile, daily_transactions) >= self.threshold


async def get_active_achievements(db: AsyncSession) -> list[Achievement]:
    result = await db.execute(
        select(Achievement)
        .where(Achievement.is_active.is_(True))
        .order_by(Achievement.sort_order, Achievement.id)
    )
    return list(result.scalars())


async def _unlocked(db: AsyncSession, address: str) -> dict[str, UserAchievement]:
    result = await db.execute(select(UserAchievement).where(UserAchievement.user_address == address))
    return {ua.achievement_id: ua for ua in result.scalars()}


async def _daily_transactions(db: AsyncSession, address: str) -> int:
    start_of_day = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    result = await db.execute(
        select(func.count())
        .select_from(Transaction)
        .where(Transaction.user_address == address, Transaction.timestamp >= start_of_day)
    )
    return result.scalar_one()


async def check_and_award(db: AsyncSession, redis: object, address: str) -> list[str]:
    """Unlock every satisfied achievement not yet held. Returns the new ids.

    Rewards are added to the profile atomically; the tier, platform totals
    and leaderboard entry are then refreshed. Requirements are evaluated on
    the counters as they were before this call's rewards.
    """
    profile = await get_profile(db, address)
    if profile is None:
        raise ProfileNotFound(address)

    unlocked = await _unlocked(db, address)
    candidates = [a for a in await get_active_achievements(db) if a.id not in unlocked]
    requirements = {a.id: Requirement.from_achievement(a) for a in candidates}

    daily = 0
    if any(r.timeframe == DAILY for r in requirements.values()):
        daily = await _daily_transactions(db, address)

    now = datetime.now(timezone.utc)
    awarded: list[str] = []
    reward_total = 0
    for achievement in candidates:
        requirement = requirements[achievement.id]
        if not requirement.is_met(profile, daily):
            continue
        created = await insert_if_absent(db, UserAchievement, {
            "user_address": address,
            "achievement_id": achievement.id,
            "unlocked_at": now,
            "progress": requirement.progress(profile, daily),
        })
        if not created:
            continue  # Unlocked concurrently
        awarded.append(achievement.id)
        reward_total += achievement.points_reward

    if not awarded:
        await db.commit()
        return []

    await db.execute(
        update(UserProfile)
        .where(UserProfile.address == address)
        .values(
            total_points=UserProfile.total_points + reward_total,
            achievements_count=UserProfile.achievements_count + len(awarded),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    new_total = (
        await db.execute(select(UserProfile.total_points).where(UserProfile.address == address))
    ).scalar_one()
    tier = resolve_tier(new_total)
    await db.execute(
        update(UserProfile)
        .where(UserProfile.address == address)
        .values(tier=tier)
        .execution_options(synchronize_session=False)
    )
    await increment_stats(db, points=reward_total)
    await db.commit()

    logger.info("Unlocked %s for %s (+%d points)", ", ".join(awarded), address, reward_total)

    await upsert_entry(db, redis, address, new_total, tier)
    get_cache().clear()
    await publish_change(redis, profile_channel(address), {"address": address, "achievements": awarded})
    return awarded


async def get_achievement_progress(db: AsyncSession, address: str) -> list[AchievementProgressResponse]:
    """Progress towards every active achievement."""
    profile = await get_profile(db, address)
    if profile is None:
        raise ProfileNotFound(address)

    unlocked = await _unlocked(db, address)
    achievements = await get_active_achievements(db)
    requirements = {a.id: Requirement.from_achievement(a) for a in achievements}

    daily = 0
    if any(r.timeframe == DAILY for r in requirements.values()):
        daily = await _daily_transactions(db, address)

    items = []
    for achievement in achievements:
        requirement = requirements[achievement.id]
        progress = requirement.progress(profile, daily)
        held = unlocked.get(achievement.id)
        items.append(AchievementProgressResponse(
            achievement_id=achievement.id,
            name=achievement.name,
            description=achievement.description,
            icon=achievement.icon,
            rarity=achievement.rarity,
            progress=progress,
            target=requirement.threshold,
            percentage=round(min(progress / requirement.threshold * 100, 100.0), 2),
            unlocked=held is not None,
            unlocked_at=held.unlocked_at if held else None,
            points_reward=achievement.points_reward,
        ))
    return items


async def get_achievement_summary(db: AsyncSession, address: str) -> AchievementSummaryResponse:
    progress = await get_achievement_progress(db, address)
    unlocked = [p for p in progress if p.unlocked]
    return AchievementSummaryResponse(
        total_achievements=len(progress),
        unlocked_achievements=len(unlocked),
        completion_percentage=round(len(unlocked) / len(progress) * 100, 2) if progress else 0.0,
        total_points_from_achievements=sum(p.points_reward for p in unlocked),
        achievements=progress,
    )


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


async def list_achievements(db: AsyncSession, include_inactive: bool = False) -> list[Achievement]:
    stmt = select(Achievement).order_by(Achievement.sort_order, Achievement.id)
    if not include_inactive:
        stmt = stmt.where(Achievement.is_active.is_(True))
    return list((await db.execute(stmt)).scalars())


async def get_achievement(db: AsyncSession, achievement_id: str) -> Achievement:
    achievement = await db.get(Achievement, achievement_id)
    if achievement is None:
        raise NotFound(f"Achievement not found: {achievement_id}")
    return achievement


async def create_achievement(db: AsyncSession, data: dict[str, Any]) -> Achievement:
    created = await insert_if_absent(db, Achievement, {
        **data,
        "is_active": True,
        "created_at": datetime.now(timezone.utc),
    })
    if not created:
        await db.rollback()
        raise ValidationFailed(f"Achievement already exists: {data['id']}")
    await db.commit()
    logger.info("Created achievement %s", data["id"])
    return await get_achievement(db, data["id"])


async def update_achievement(db: AsyncSession, achievement_id: str, updates: dict[str, Any]) -> Achievement:
    achievement = await get_achievement(db, achievement_id)
    for name, value in updates.items():
        if value is not None:
            setattr(achievement, name, value)
    try:
        Requirement.from_achievement(achievement)
    except ValidationFailed:
        await db.rollback()
        raise
    await db.commit()
    return achievement


async def delete_achievement(db: AsyncSession, achievement_id: str) -> None:
    """Deactivate an achievement. Unlock records that reference it are kept."""
    achievement = await get_achievement(db, achievement_id)
    achievement.is_active = False
    await db.commit()
    logger.info("Deactivated achievement %s", achievement_id)
