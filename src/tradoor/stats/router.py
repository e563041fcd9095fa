"""Platform stats and milestone endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.dependencies import get_db
from tradoor.stats.milestones import list_milestones
from tradoor.stats.schemas import MilestoneResponse, PlatformStatsResponse
from tradoor.stats.service import get_stats_snapshot

router = APIRouter(prefix="/api/v1", tags=["Stats"])


@router.get("/stats", response_model=PlatformStatsResponse)
async def read_stats(db: AsyncSession = Depends(get_db)):
    return await get_stats_snapshot(db)


@router.get("/milestones", response_model=list[MilestoneResponse])
async def read_milestones(db: AsyncSession = Depends(get_db)):
    return [MilestoneResponse.model_validate(m) for m in await list_milestones(db)]
