"""Profile endpoints: read, first-touch upsert, tier progress, history, achievements."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.achievements.schemas import AchievementSummaryResponse
from tradoor.achievements.service import get_achievement_summary
from tradoor.chain.client import ChainClient
from tradoor.dependencies import get_chain, get_db, get_redis_dep
from tradoor.errors import ProfileNotFound
from tradoor.points.tiers import tier_progress
from tradoor.profiles.schemas import ProfileResponse, ProfileUpdate, TierProgressResponse
from tradoor.profiles.service import get_profile_snapshot, upsert_profile
from tradoor.transactions.schemas import TransactionListResponse, TransactionResponse
from tradoor.transactions.service import get_user_transactions

router = APIRouter(prefix="/api/v1/profiles", tags=["Profiles"])


@router.get("/{address}", response_model=ProfileResponse)
async def read_profile(address: str, db: AsyncSession = Depends(get_db)):
    profile = await get_profile_snapshot(db, address)
    if profile is None:
        raise ProfileNotFound(address)
    return profile


@router.put("/{address}", response_model=ProfileResponse)
async def put_profile(
    address: str,
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
    chain: ChainClient = Depends(get_chain),
):
    """Create the profile on first touch (running the one-time grant) or update it."""
    profile = await upsert_profile(db, redis, address, body.model_dump(exclude_none=True), chain=chain)
    return ProfileResponse.model_validate(profile)


@router.get("/{address}/tier", response_model=TierProgressResponse)
async def read_tier_progress(address: str, db: AsyncSession = Depends(get_db)):
    profile = await get_profile_snapshot(db, address)
    if profile is None:
        raise ProfileNotFound(address)
    return TierProgressResponse(**tier_progress(profile.total_points))


@router.get("/{address}/transactions", response_model=TransactionListResponse)
async def read_transactions(
    address: str,
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    transactions = await get_user_transactions(db, address, limit)
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        total=len(transactions),
    )


@router.get("/{address}/achievements", response_model=AchievementSummaryResponse)
async def read_achievements(address: str, db: AsyncSession = Depends(get_db)):
    return await get_achievement_summary(db, address)
