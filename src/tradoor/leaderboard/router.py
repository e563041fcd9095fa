"""Leaderboard endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.db.models import LeaderboardEntry
from tradoor.dependencies import get_db, get_redis_dep
from tradoor.errors import NotFound
from tradoor.leaderboard.schemas import LeaderboardResponse, UserRankResponse
from tradoor.leaderboard.service import get_entry, get_top_snapshot, get_user_rank

router = APIRouter(prefix="/api/v1/leaderboard", tags=["Leaderboard"])


@router.get("", response_model=LeaderboardResponse)
async def read_leaderboard(
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    entries = await get_top_snapshot(db, limit)
    return LeaderboardResponse(entries=entries, total=len(entries))


@router.get("/rank/{address}", response_model=UserRankResponse)
async def read_user_rank(
    address: str,
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    """Rank from the sorted-set mirror, falling back to the table."""
    rank = await get_user_rank(redis, address)
    if rank is not None:
        return UserRankResponse(**rank)

    entry = await get_entry(db, address)
    if entry is None:
        raise NotFound(f"No leaderboard entry for {address}")
    total = (await db.execute(select(func.count()).select_from(LeaderboardEntry))).scalar_one()
    return UserRankResponse(
        address=address,
        rank=entry.rank,
        points=float(entry.points),
        total=total,
        percentile=round(100 - (entry.rank / total * 100), 2) if total and entry.rank else 0,
    )
