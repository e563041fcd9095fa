"""Scheduled job tests against the shared in-memory database."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.stats.milestones import create_milestone
from tradoor.stats.service import update_stats
from tradoor.workers.jobs import WorkerSettings, hourly_milestones, nightly_recalculate

ALICE = "0x1111111111111111111111111111111111111111"


class TestJobs:
    @pytest.mark.asyncio
    async def test_nightly_recalculate(self, db_session: AsyncSession, make_profile):
        await make_profile(ALICE)
        await update_stats(db_session, None, {"total_users": 99})

        assert await nightly_recalculate({}) == 1

    @pytest.mark.asyncio
    async def test_hourly_milestones(self, db_session: AsyncSession, make_profile):
        await make_profile(ALICE)
        await create_milestone(db_session, None, {"name": "One", "target": 1, "type": "users"})
        await create_milestone(db_session, None, {"name": "Two", "target": 2, "type": "users"})

        assert await hourly_milestones({}) == 1

    def test_schedule(self):
        assert len(WorkerSettings.cron_jobs) == 4
        assert WorkerSettings.on_startup is not None
