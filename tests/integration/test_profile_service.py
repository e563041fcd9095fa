"""Profile service tests: first-touch grant, field ownership, point updates."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.cache import get_cache
from tradoor.db.models import UserProfile
from tradoor.errors import ProfileNotFound, ValidationFailed
from tradoor.leaderboard.service import LEADERBOARD_KEY, get_entry
from tradoor.live.channels import profile_channel
from tradoor.points.calculator import DEFAULT_INITIAL_POINTS, ChainTransaction
from tradoor.profiles.service import (
    PROFILE_CACHE_KEY,
    IdentityContext,
    get_profile,
    get_profile_snapshot,
    set_last_processed_block,
    update_balance,
    update_points,
    upsert_profile,
)
from tradoor.stats.service import get_stats, update_stats

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"


def _history() -> list[ChainTransaction]:
    """3 transactions, 210000 gwei of gas in total, 2 ETH of value."""
    return [
        ChainTransaction(
            hash=f"0x{n:064x}",
            block_number=900 + n,
            from_address=ALICE,
            to_address=BOB,
            value=10**18 if n < 2 else 0,
            gas=70_000,
            gas_price=10**9,
        )
        for n in range(3)
    ]


class TestInitialGrant:
    """Test the one-time initial points grant."""

    @pytest.mark.asyncio
    async def test_grant_from_chain_history(self, db_session: AsyncSession, fake_chain):
        """3 + 21 + 20 = 44 points, Bronze, counted once in the platform totals."""
        fake_chain.wallet_transactions[ALICE] = _history()

        profile = await upsert_profile(db_session, None, ALICE, chain=fake_chain)

        assert profile.initial is True
        assert profile.total_points == 44
        assert profile.tier == "Bronze"
        assert profile.total_transactions == 3
        assert profile.current_rank == 1

        stats = await get_stats(db_session)
        assert stats.total_users == 1
        assert stats.total_points == 44

        entry = await get_entry(db_session, ALICE)
        assert entry is not None
        assert entry.points == 44
        assert entry.rank == 1

    @pytest.mark.asyncio
    async def test_grant_runs_once(self, db_session: AsyncSession, fake_chain):
        """A second upsert only applies fields; later chain activity is not re-granted."""
        fake_chain.wallet_transactions[ALICE] = _history()
        await upsert_profile(db_session, None, ALICE, chain=fake_chain)

        fake_chain.wallet_transactions[ALICE] = _history() * 10
        profile = await upsert_profile(db_session, None, ALICE, {"username": "alice"}, chain=fake_chain)

        assert profile.total_points == 44
        assert profile.username == "alice"
        stats = await get_stats(db_session)
        assert stats.total_users == 1
        assert stats.total_points == 44

    @pytest.mark.asyncio
    async def test_legacy_row_backfill_counts_difference(self, db_session: AsyncSession, fake_chain):
        """An uninitialized row already holding 30 points moves the platform total by 44 - 30."""
        db_session.add(UserProfile(address=ALICE, total_points=30, initial=False))
        await db_session.commit()
        await update_stats(db_session, None, {"total_users": 1, "total_points": 30})
        fake_chain.wallet_transactions[ALICE] = _history()

        profile = await upsert_profile(db_session, None, ALICE, chain=fake_chain)

        assert profile.total_points == 44
        stats = await get_stats(db_session)
        assert stats.total_users == 1
        assert stats.total_points == 44

    @pytest.mark.asyncio
    async def test_chain_failure_grants_default(self, db_session: AsyncSession, fake_chain):
        fake_chain.fail = True
        profile = await upsert_profile(db_session, None, ALICE, chain=fake_chain)
        assert profile.initial is True
        assert profile.total_points == DEFAULT_INITIAL_POINTS

    @pytest.mark.asyncio
    async def test_identity_applied_on_creation(self, db_session: AsyncSession, fake_chain):
        identity = IdentityContext(fid=42, username="alice", pfp_url="https://example.com/a.png")
        profile = await upsert_profile(db_session, None, ALICE, identity=identity, chain=fake_chain)
        assert profile.fid == 42
        assert profile.username == "alice"
        assert profile.pfp_url == "https://example.com/a.png"


class TestFieldOwnership:
    """Test that clients cannot write server-owned fields."""

    @pytest.mark.asyncio
    async def test_server_fields_ignored(self, db_session: AsyncSession, fake_chain):
        await upsert_profile(db_session, None, ALICE, chain=fake_chain)
        profile = await upsert_profile(
            db_session,
            None,
            ALICE,
            {"total_points": 99_999, "tier": "Diamond", "initial": False, "display_name": "Alice"},
            chain=fake_chain,
        )
        assert profile.total_points == 0
        assert profile.tier == "Bronze"
        assert profile.initial is True
        assert profile.display_name == "Alice"

    @pytest.mark.asyncio
    async def test_snapshot_reflects_update(self, db_session: AsyncSession, fake_chain):
        """The cache is dropped on every mutation."""
        await upsert_profile(db_session, None, ALICE, chain=fake_chain)
        first = await get_profile_snapshot(db_session, ALICE)
        assert first.username is None

        await upsert_profile(db_session, None, ALICE, {"username": "alice"}, chain=fake_chain)
        second = await get_profile_snapshot(db_session, ALICE)
        assert second.username == "alice"

    @pytest.mark.asyncio
    async def test_snapshot_missing_profile(self, db_session: AsyncSession):
        assert await get_profile_snapshot(db_session, ALICE) is None


class TestUpdatePoints:
    """Test point deltas, tier changes and aggregate propagation."""

    @pytest.mark.asyncio
    async def test_tier_changes_and_propagates(self, db_session: AsyncSession, make_profile):
        await make_profile(ALICE)

        profile = await update_points(db_session, None, ALICE, 1_000)

        assert profile.total_points == 1_000
        assert profile.tier == "Silver"
        entry = await get_entry(db_session, ALICE)
        assert entry.points == 1_000
        assert entry.tier == "Silver"
        stats = await get_stats(db_session)
        assert stats.total_points == 1_000

    @pytest.mark.asyncio
    async def test_negative_total_rejected(self, db_session: AsyncSession, make_profile):
        await make_profile(ALICE)
        await update_points(db_session, None, ALICE, 30)

        with pytest.raises(ValidationFailed):
            await update_points(db_session, None, ALICE, -31)

        profile = await get_profile(db_session, ALICE)
        assert profile.total_points == 30

    @pytest.mark.asyncio
    async def test_missing_profile(self, db_session: AsyncSession):
        with pytest.raises(ProfileNotFound):
            await update_points(db_session, None, ALICE, 10)

    @pytest.mark.asyncio
    async def test_publishes_and_mirrors(self, db_session: AsyncSession, make_profile, fake_redis):
        await make_profile(ALICE)

        await update_points(db_session, fake_redis, ALICE, 25)

        fake_redis.zadd.assert_awaited_with(LEADERBOARD_KEY, {ALICE: 25.0})
        channels = [call.args[0] for call in fake_redis.publish.await_args_list]
        assert profile_channel(ALICE) in channels


class TestUpdateBalance:
    @pytest.mark.asyncio
    async def test_buy_then_sell(self, db_session: AsyncSession, make_profile):
        await make_profile(ALICE)

        assert await update_balance(db_session, None, ALICE, 100.0, "buy") == 100.0
        assert await update_balance(db_session, None, ALICE, 40.0, "sell") == 60.0

        profile = await get_profile(db_session, ALICE)
        assert profile.ptradoor_earned == 100.0

    @pytest.mark.asyncio
    async def test_sell_never_below_zero(self, db_session: AsyncSession, make_profile):
        await make_profile(ALICE)
        assert await update_balance(db_session, None, ALICE, 500.0, "sell") == 0.0

    @pytest.mark.asyncio
    async def test_unknown_side(self, db_session: AsyncSession, make_profile):
        await make_profile(ALICE)
        with pytest.raises(ValidationFailed):
            await update_balance(db_session, None, ALICE, 1.0, "swap")


class TestLastProcessedBlock:
    @pytest.mark.asyncio
    async def test_write_invalidates_cached_snapshot(self, db_session: AsyncSession, make_profile):
        await make_profile(ALICE)
        await get_profile_snapshot(db_session, ALICE)
        key = PROFILE_CACHE_KEY.format(address=ALICE)
        assert get_cache().get(key) is not None

        await set_last_processed_block(db_session, ALICE, 1_234)

        assert get_cache().get(key) is None
        assert (await get_profile(db_session, ALICE)).last_processed_block == 1_234
