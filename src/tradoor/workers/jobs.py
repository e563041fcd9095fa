"""Scheduled jobs: transfer monitoring, holding bonuses and nightly repair.

Run with: arq tradoor.workers.settings.WorkerSettings
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from arq import cron
from arq.connections import RedisSettings

from tradoor.chain.client import get_chain_client
from tradoor.chain.monitor import monitor_recent
from tradoor.chain.price import get_price_oracle
from tradoor.config import get_settings
from tradoor.database import close_db, get_session_factory, init_db
from tradoor.leaderboard.service import sync_all
from tradoor.redis_client import close_redis, get_redis_or_none, init_redis
from tradoor.stats.milestones import recompute_milestones
from tradoor.stats.service import recalculate_stats
from tradoor.trading.orchestrator import distribute_daily_bonuses

logger = logging.getLogger(__name__)


async def monitor_transfers(ctx: dict) -> dict:
    """Credit token transfers seen since the last scan window."""
    async with get_session_factory()() as db:
        result = await monitor_recent(db, get_redis_or_none())
    if result.errors:
        logger.warning("Transfer monitor finished with %d errors", len(result.errors))
    logger.info(
        "Transfer monitor: %d processed, %d skipped, %d points",
        result.processed_transactions,
        result.skipped_transactions,
        result.new_points_awarded,
    )
    return asdict(result)


async def daily_holding_bonus(ctx: dict) -> dict:
    """Award the daily holding bonus to every holder."""
    async with get_session_factory()() as db:
        result = await distribute_daily_bonuses(db, get_redis_or_none())
    logger.info("Daily holding bonus: %d awarded, %d points", result.awarded, result.total_points)
    return asdict(result)


async def nightly_recalculate(ctx: dict) -> int:
    """Rebuild platform stats from the ledger and resync the leaderboard mirror."""
    redis = get_redis_or_none()
    async with get_session_factory()() as db:
        await recalculate_stats(db, redis)
        synced = await sync_all(db, redis)
    logger.info("Nightly recalculation done: %d leaderboard entries synced", synced)
    return synced


async def hourly_milestones(ctx: dict) -> int:
    """Mark milestones whose target the platform has reached."""
    async with get_session_factory()() as db:
        completed = await recompute_milestones(db, get_redis_or_none())
    if completed:
        logger.info("Milestones completed: %d", completed)
    return completed


async def startup(ctx: dict) -> None:
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    logger.info("Points worker started")


async def shutdown(ctx: dict) -> None:
    await get_chain_client().aclose()
    await get_price_oracle().aclose()
    await close_db()
    await close_redis()
    logger.info("Points worker shut down")


class WorkerSettings:
    """arq worker settings for the points engine."""

    functions = [monitor_transfers, daily_holding_bonus, nightly_recalculate, hourly_milestones]
    cron_jobs = [
        cron(monitor_transfers, minute=set(range(0, 60, 5)), run_at_startup=False),
        cron(daily_holding_bonus, hour={0}, minute={0}),
        cron(nightly_recalculate, hour={3}, minute={30}),
        cron(hourly_milestones, minute={15}),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 4
    job_timeout = 600
