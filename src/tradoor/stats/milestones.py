"""Platform milestones: admin CRUD and recompute from the aggregate stats."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.db.models import Milestone
from tradoor.errors import NotFound
from tradoor.live.channels import MILESTONES_CHANNEL, publish_change
from tradoor.stats.service import ensure_stats

logger = structlog.get_logger()

MILESTONE_DEFINITIONS: list[dict] = [
    {"name": "First 100 Users", "target": 100, "type": "users"},
    {"name": "pTradoor Launch", "target": 1_000, "type": "users"},
    {"name": "50K Transactions", "target": 50_000, "type": "transactions"},
    {"name": "Tradoor Token", "target": 100_000, "type": "points"},
    {"name": "1M Total Points", "target": 1_000_000, "type": "points"},
]

_STAT_FIELD_BY_TYPE = {
    "users": "total_users",
    "transactions": "total_transactions",
    "points": "total_points",
}


async def list_milestones(db: AsyncSession) -> list[Milestone]:
    result = await db.execute(select(Milestone).order_by(Milestone.created_at.desc(), Milestone.id.desc()))
    return list(result.scalars())


async def get_milestone(db: AsyncSession, milestone_id: int) -> Milestone:
    milestone = await db.get(Milestone, milestone_id)
    if milestone is None:
        raise NotFound(f"Milestone not found: {milestone_id}")
    return milestone


async def create_milestone(db: AsyncSession, redis: object, data: dict[str, Any]) -> Milestone:
    now = datetime.now(timezone.utc)
    milestone = Milestone(
        name=data["name"],
        target=data["target"],
        type=data["type"],
        current=data.get("current", 0),
        completed=data.get("completed", False),
        created_at=now,
        updated_at=now,
    )
    db.add(milestone)
    await db.commit()
    await publish_change(redis, MILESTONES_CHANNEL)
    return milestone


async def update_milestone(db: AsyncSession, redis: object, milestone_id: int, updates: dict[str, Any]) -> Milestone:
    milestone = await get_milestone(db, milestone_id)
    for name in ("name", "target", "current", "completed"):
        if updates.get(name) is not None:
            setattr(milestone, name, updates[name])
    milestone.updated_at = datetime.now(timezone.utc)
    await db.commit()
    await publish_change(redis, MILESTONES_CHANNEL)
    return milestone


async def delete_milestone(db: AsyncSession, redis: object, milestone_id: int) -> None:
    milestone = await get_milestone(db, milestone_id)
    await db.delete(milestone)
    await db.commit()
    await publish_change(redis, MILESTONES_CHANNEL)


async def seed_milestones(db: AsyncSession) -> int:
    """Insert the launch milestones that do not exist yet. Idempotent by name."""
    existing = set((await db.execute(select(Milestone.name))).scalars())
    created = 0
    now = datetime.now(timezone.utc)
    for definition in MILESTONE_DEFINITIONS:
        if definition["name"] in existing:
            continue
        db.add(Milestone(
            name=definition["name"],
            target=definition["target"],
            type=definition["type"],
            current=0,
            completed=False,
            created_at=now,
            updated_at=now,
        ))
        created += 1
    await db.commit()
    logger.info("milestones_seeded", created=created)
    return created


async def recompute_milestones(db: AsyncSession, redis: object) -> int:
    """Set every milestone's progress from the platform counters.

    Returns the number of milestones that are completed afterwards.
    """
    stats = await ensure_stats(db)
    milestones = await list_milestones(db)
    now = datetime.now(timezone.utc)
    completed = 0

    for milestone in milestones:
        field = _STAT_FIELD_BY_TYPE.get(milestone.type)
        if field is None:
            logger.warning("milestone_unknown_type", milestone_id=milestone.id, type=milestone.type)
            continue
        milestone.current = int(getattr(stats, field))
        milestone.completed = milestone.current >= milestone.target
        milestone.updated_at = now
        if milestone.completed:
            completed += 1

    await db.commit()
    await publish_change(redis, MILESTONES_CHANNEL)
    return completed
