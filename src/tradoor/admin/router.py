"""Admin endpoints: repair paths, seeding, milestones, achievement templates.

Every route requires the X-Admin-Token header.
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.achievements.schemas import (
    AchievementCheckResponse,
    AchievementCreate,
    AchievementResponse,
    AchievementUpdate,
)
from tradoor.achievements.seed import seed_achievements
from tradoor.achievements.service import (
    check_and_award,
    create_achievement,
    delete_achievement,
    list_achievements,
    update_achievement,
)
from tradoor.chain.client import ChainClient
from tradoor.chain.monitor import monitor_address, monitor_recent
from tradoor.chain.price import PriceOracle
from tradoor.dependencies import get_chain, get_db, get_oracle, get_redis_dep, require_admin
from tradoor.errors import NotFound
from tradoor.leaderboard.schemas import (
    LeaderboardDiagnosis,
    LeaderboardEntryResponse,
    RankingRecalculationResponse,
)
from tradoor.leaderboard.service import diagnose, ensure_entry, recalculate_rankings, sync_all
from tradoor.profiles.schemas import ProfileResponse
from tradoor.profiles.service import update_points
from tradoor.stats.milestones import (
    create_milestone,
    delete_milestone,
    recompute_milestones,
    seed_milestones,
    update_milestone,
)
from tradoor.stats.schemas import (
    MilestoneCreate,
    MilestoneResponse,
    MilestoneUpdate,
    PlatformStatsResponse,
    PlatformStatsUpdate,
)
from tradoor.stats.service import recalculate_stats, update_stats
from tradoor.trading.orchestrator import distribute_daily_bonuses

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


class PointsAdjustment(BaseModel):
    delta: int


# ── Stats ──


@router.post("/stats/recalculate", response_model=PlatformStatsResponse)
async def post_recalculate_stats(
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    return PlatformStatsResponse.model_validate(await recalculate_stats(db, redis))


@router.patch("/stats", response_model=PlatformStatsResponse)
async def patch_stats(
    body: PlatformStatsUpdate,
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    stats = await update_stats(db, redis, body.model_dump(exclude_none=True))
    return PlatformStatsResponse.model_validate(stats)


# ── Leaderboard ──


@router.post("/leaderboard/sync")
async def post_sync_leaderboard(
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
) -> dict[str, int]:
    return {"synced": await sync_all(db, redis)}


@router.post("/leaderboard/recalculate", response_model=RankingRecalculationResponse)
async def post_recalculate_rankings(db: AsyncSession = Depends(get_db)):
    return RankingRecalculationResponse(ranked=await recalculate_rankings(db))


@router.get("/leaderboard/diagnose", response_model=LeaderboardDiagnosis)
async def get_diagnosis(db: AsyncSession = Depends(get_db)):
    return await diagnose(db)


@router.post("/leaderboard/ensure/{address}", response_model=LeaderboardEntryResponse)
async def post_ensure_entry(
    address: str,
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    entry = await ensure_entry(db, redis, address)
    if entry is None:
        raise NotFound(f"User profile not found: {address}")
    return LeaderboardEntryResponse.model_validate(entry)


# ── Profiles ──


@router.post("/profiles/{address}/points", response_model=ProfileResponse)
async def post_adjust_points(
    address: str,
    body: PointsAdjustment,
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    return ProfileResponse.model_validate(await update_points(db, redis, address, body.delta))


@router.post("/profiles/{address}/achievements/check", response_model=AchievementCheckResponse)
async def post_check_achievements(
    address: str,
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    return AchievementCheckResponse(unlocked=await check_and_award(db, redis, address))


# ── Milestones ──


@router.post("/milestones", response_model=MilestoneResponse, status_code=201)
async def post_milestone(
    body: MilestoneCreate,
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    return MilestoneResponse.model_validate(await create_milestone(db, redis, body.model_dump()))


@router.put("/milestones/{milestone_id}", response_model=MilestoneResponse)
async def put_milestone(
    milestone_id: int,
    body: MilestoneUpdate,
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    milestone = await update_milestone(db, redis, milestone_id, body.model_dump(exclude_none=True))
    return MilestoneResponse.model_validate(milestone)


@router.delete("/milestones/{milestone_id}", status_code=204)
async def remove_milestone(
    milestone_id: int,
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
) -> None:
    await delete_milestone(db, redis, milestone_id)


@router.post("/milestones/recompute")
async def post_recompute_milestones(
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
) -> dict[str, int]:
    return {"completed": await recompute_milestones(db, redis)}


# ── Achievements ──


@router.get("/achievements", response_model=list[AchievementResponse])
async def get_achievements(include_inactive: bool = True, db: AsyncSession = Depends(get_db)):
    return [AchievementResponse.model_validate(a) for a in await list_achievements(db, include_inactive)]


@router.post("/achievements", response_model=AchievementResponse, status_code=201)
async def post_achievement(body: AchievementCreate, db: AsyncSession = Depends(get_db)):
    return AchievementResponse.model_validate(await create_achievement(db, body.model_dump()))


@router.put("/achievements/{achievement_id}", response_model=AchievementResponse)
async def put_achievement(achievement_id: str, body: AchievementUpdate, db: AsyncSession = Depends(get_db)):
    achievement = await update_achievement(db, achievement_id, body.model_dump(exclude_none=True))
    return AchievementResponse.model_validate(achievement)


@router.delete("/achievements/{achievement_id}", status_code=204)
async def remove_achievement(achievement_id: str, db: AsyncSession = Depends(get_db)) -> None:
    await delete_achievement(db, achievement_id)


# ── Seeding and jobs ──


@router.post("/seed")
async def post_seed(db: AsyncSession = Depends(get_db)) -> dict[str, int]:
    return {
        "achievements": await seed_achievements(db),
        "milestones": await seed_milestones(db),
    }


@router.post("/bonuses/daily")
async def post_daily_bonuses(
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
) -> dict:
    return asdict(await distribute_daily_bonuses(db, redis))


@router.post("/monitor")
async def post_monitor_recent(
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
    chain: ChainClient = Depends(get_chain),
    oracle: PriceOracle = Depends(get_oracle),
) -> dict:
    return asdict(await monitor_recent(db, redis, chain=chain, oracle=oracle))


@router.post("/monitor/{address}")
async def post_monitor_address(
    address: str,
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
    chain: ChainClient = Depends(get_chain),
    oracle: PriceOracle = Depends(get_oracle),
) -> dict:
    return asdict(await monitor_address(db, redis, address, chain=chain, oracle=oracle))
