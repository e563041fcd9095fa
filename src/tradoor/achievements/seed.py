"""Achievement seed data: the ten launch achievements."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.db.models import Achievement
from tradoor.db.upsert import insert_if_absent

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    {
        "id": "first_trade",
        "name": "First Trade",
        "description": "Complete your first pTradoor transaction",
        "icon": "\U0001f3af",
        "rarity": "common",
        "requirement_type": "transactions",
        "requirement_value": 1,
        "timeframe": "all_time",
        "points_reward": 10,
        "sort_order": 1,
    },
    {
        "id": "active_trader",
        "name": "Active Trader",
        "description": "Complete 10 transactions in one day",
        "icon": "\u26a1",
        "rarity": "rare",
        "requirement_type": "transactions",
        "requirement_value": 10,
        "timeframe": "daily",
        "points_reward": 50,
        "sort_order": 2,
    },
    {
        "id": "hodl_master",
        "name": "HODL Master",
        "description": "Hold pTradoor for 30 consecutive days",
        "icon": "\U0001f48e",
        "rarity": "epic",
        "requirement_type": "streak",
        "requirement_value": 30,
        "timeframe": "all_time",
        "points_reward": 200,
        "sort_order": 3,
    },
    {
        "id": "high_roller",
        "name": "High Roller",
        "description": "Make a single trade worth more than 1000 pTradoor",
        "icon": "\U0001f3b0",
        "rarity": "rare",
        "requirement_type": "balance",
        "requirement_value": 1000,
        "timeframe": "all_time",
        "points_reward": 100,
        "sort_order": 4,
    },
    {
        "id": "point_collector",
        "name": "Point Collector",
        "description": "Earn 1000 total points",
        "icon": "\U0001f3c6",
        "rarity": "epic",
        "requirement_type": "points",
        "requirement_value": 1000,
        "timeframe": "all_time",
        "points_reward": 150,
        "sort_order": 5,
    },
    {
        "id": "tier_climber",
        "name": "Tier Climber",
        "description": "Reach Silver tier",
        "icon": "\U0001f948",
        "rarity": "common",
        "requirement_type": "points",
        "requirement_value": 1000,
        "timeframe": "all_time",
        "points_reward": 25,
        "sort_order": 6,
    },
    {
        "id": "golden_trader",
        "name": "Golden Trader",
        "description": "Reach Gold tier",
        "icon": "\U0001f947",
        "rarity": "rare",
        "requirement_type": "points",
        "requirement_value": 5000,
        "timeframe": "all_time",
        "points_reward": 100,
        "sort_order": 7,
    },
    {
        "id": "diamond_hands",
        "name": "Diamond Hands",
        "description": "Reach Diamond tier",
        "icon": "\U0001f4a0",
        "rarity": "legendary",
        "requirement_type": "points",
        "requirement_value": 50000,
        "timeframe": "all_time",
        "points_reward": 500,
        "sort_order": 8,
    },
    {
        "id": "streak_master",
        "name": "Streak Master",
        "description": "Maintain a 7-day trading streak",
        "icon": "\U0001f525",
        "rarity": "rare",
        "requirement_type": "streak",
        "requirement_value": 7,
        "timeframe": "all_time",
        "points_reward": 75,
        "sort_order": 9,
    },
    {
        "id": "volume_trader",
        "name": "Volume Trader",
        "description": "Trade 1000 pTradoor in total volume",
        "icon": "\U0001f4c8",
        "rarity": "epic",
        "requirement_type": "balance",
        "requirement_value": 1000,
        "timeframe": "all_time",
        "points_reward": 200,
        "sort_order": 10,
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    """Insert missing launch achievements. Existing rows, including admin edits, are kept.

    Returns the number of achievements created.
    """
    created = 0
    now = datetime.now(timezone.utc)
    for data in ACHIEVEMENT_SEED_DATA:
        if await insert_if_absent(db, Achievement, {**data, "is_active": True, "created_at": now}):
            created += 1

    await db.commit()
    logger.info("Seeded %d achievement definitions", created)
    return created
