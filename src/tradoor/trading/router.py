"""Trading endpoints."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.chain.price import PriceOracle
from tradoor.dependencies import get_db, get_oracle, get_redis_dep
from tradoor.points.calculator import trade_points
from tradoor.trading.orchestrator import execute_trade, get_trade_stats
from tradoor.trading.schemas import (
    PointsEstimateResponse,
    TradeRequest,
    TradeResultResponse,
    TradeStatsResponse,
)

router = APIRouter(prefix="/api/v1/trades", tags=["Trading"])


@router.post("", response_model=TradeResultResponse)
async def post_trade(
    body: TradeRequest,
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
    oracle: PriceOracle = Depends(get_oracle),
):
    """Execute a trade. Failures are reported in the body with success=false."""
    result = await execute_trade(
        db, redis, body.address, body.side, body.usd_amount, tx_hash=body.tx_hash, oracle=oracle
    )
    data = asdict(result)
    data["state"] = result.state.value
    return TradeResultResponse(**data)


@router.get("/estimate", response_model=PointsEstimateResponse)
async def estimate_points(
    usd_amount: float = Query(..., ge=0),
    has_multiplier: bool = False,
):
    """Projected points for a USD amount."""
    return PointsEstimateResponse(
        usd_amount=usd_amount,
        has_multiplier=has_multiplier,
        points=trade_points(usd_amount, has_multiplier),
    )


@router.get("/stats/{address}", response_model=TradeStatsResponse)
async def read_trade_stats(address: str, db: AsyncSession = Depends(get_db)):
    return TradeStatsResponse(**asdict(await get_trade_stats(db, address)))
