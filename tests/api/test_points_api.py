"""Public API tests: profiles, trades, leaderboard, stats."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from tradoor.points.calculator import ChainTransaction

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"


class TestProfilesAPI:
    """Test /api/v1/profiles."""

    @pytest.mark.asyncio
    async def test_first_touch_grants_points(self, client: AsyncClient, fake_chain):
        fake_chain.wallet_transactions[ALICE] = [
            ChainTransaction(
                hash="0x01",
                block_number=950,
                from_address=ALICE,
                to_address=BOB,
                value=2 * 10**18,
                gas=210_000,
                gas_price=10**9,
            )
        ]

        response = await client.put(f"/api/v1/profiles/{ALICE}", json={"username": "alice"})

        assert response.status_code == 200
        data = response.json()
        assert data["initial"] is True
        assert data["username"] == "alice"
        assert data["total_points"] == 1 + 21 + 20
        assert data["tier"] == "Bronze"
        assert data["current_rank"] == 1

    @pytest.mark.asyncio
    async def test_server_fields_in_body_ignored(self, client: AsyncClient):
        response = await client.put(
            f"/api/v1/profiles/{ALICE}",
            json={"total_points": 50_000, "tier": "Diamond", "display_name": "Alice"},
        )
        data = response.json()
        assert data["total_points"] == 0
        assert data["tier"] == "Bronze"
        assert data["display_name"] == "Alice"

    @pytest.mark.asyncio
    async def test_read_profile(self, client: AsyncClient):
        await client.put(f"/api/v1/profiles/{ALICE}", json={})
        response = await client.get(f"/api/v1/profiles/{ALICE}")
        assert response.status_code == 200
        assert response.json()["address"] == ALICE

    @pytest.mark.asyncio
    async def test_unknown_profile(self, client: AsyncClient):
        response = await client.get(f"/api/v1/profiles/{ALICE}")
        assert response.status_code == 404
        assert response.json()["error"] == "profile_not_found"

    @pytest.mark.asyncio
    async def test_tier_progress(self, client: AsyncClient):
        await client.put(f"/api/v1/profiles/{ALICE}", json={})
        response = await client.get(f"/api/v1/profiles/{ALICE}/tier")
        assert response.json() == {
            "tier": "Bronze",
            "next_tier": "Silver",
            "points": 0,
            "points_to_next": 1_000,
            "percentage": 0.0,
        }

    @pytest.mark.asyncio
    async def test_history_and_achievements(self, client: AsyncClient):
        await client.put(f"/api/v1/profiles/{ALICE}", json={})
        await client.post("/api/v1/trades", json={"address": ALICE, "side": "buy", "usd_amount": 100})

        history = (await client.get(f"/api/v1/profiles/{ALICE}/transactions")).json()
        assert history["total"] == 1
        assert history["transactions"][0]["type"] == "buy"
        assert history["transactions"][0]["metadata"]["trade_type"] == "dynamic_dollar"

        achievements = (await client.get(f"/api/v1/profiles/{ALICE}/achievements")).json()
        assert achievements["unlocked_achievements"] == 1
        assert achievements["total_points_from_achievements"] == 10


class TestTradesAPI:
    """Test /api/v1/trades."""

    @pytest.mark.asyncio
    async def test_trade(self, client: AsyncClient):
        await client.put(f"/api/v1/profiles/{ALICE}", json={})

        response = await client.post("/api/v1/trades", json={"address": ALICE, "side": "buy", "usd_amount": 100})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["state"] == "done"
        assert data["points_earned"] == 50
        assert data["achievements_unlocked"] == ["first_trade"]

    @pytest.mark.asyncio
    async def test_failed_trade_reported_in_body(self, client: AsyncClient):
        response = await client.post("/api/v1/trades", json={"address": ALICE, "side": "buy", "usd_amount": 100})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["state"] == "failed"
        assert "not found" in data["error"]

    @pytest.mark.asyncio
    async def test_negative_amount_rejected(self, client: AsyncClient):
        response = await client.post("/api/v1/trades", json={"address": ALICE, "side": "buy", "usd_amount": -1})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_estimate(self, client: AsyncClient):
        response = await client.get("/api/v1/trades/estimate", params={"usd_amount": 100, "has_multiplier": True})
        assert response.json()["points"] == 150

    @pytest.mark.asyncio
    async def test_trade_stats(self, client: AsyncClient):
        await client.put(f"/api/v1/profiles/{ALICE}", json={})
        await client.post("/api/v1/trades", json={"address": ALICE, "side": "buy", "usd_amount": 100})

        data = (await client.get(f"/api/v1/trades/stats/{ALICE}")).json()

        assert data["total_trades"] == 1
        assert data["points_earned"] == 50
        assert data["current_streak"] == 1


class TestLeaderboardAndStatsAPI:
    @pytest.mark.asyncio
    async def test_leaderboard_order(self, client: AsyncClient):
        await client.put(f"/api/v1/profiles/{ALICE}", json={})
        await client.put(f"/api/v1/profiles/{BOB}", json={})
        await client.post("/api/v1/trades", json={"address": BOB, "side": "buy", "usd_amount": 100})

        data = (await client.get("/api/v1/leaderboard")).json()

        assert data["total"] == 2
        assert [e["user_address"] for e in data["entries"]] == [BOB, ALICE]
        assert [e["rank"] for e in data["entries"]] == [1, 2]

    @pytest.mark.asyncio
    async def test_rank_falls_back_to_table(self, client: AsyncClient):
        await client.put(f"/api/v1/profiles/{ALICE}", json={})
        data = (await client.get(f"/api/v1/leaderboard/rank/{ALICE}")).json()
        assert data["rank"] == 1
        assert data["total"] == 1

    @pytest.mark.asyncio
    async def test_rank_unknown(self, client: AsyncClient):
        response = await client.get(f"/api/v1/leaderboard/rank/{ALICE}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_stats(self, client: AsyncClient):
        await client.put(f"/api/v1/profiles/{ALICE}", json={})
        await client.post("/api/v1/trades", json={"address": ALICE, "side": "buy", "usd_amount": 100})

        data = (await client.get("/api/v1/stats")).json()

        assert data["total_users"] == 1
        assert data["total_transactions"] == 1
        assert data["total_points"] == 60

    @pytest.mark.asyncio
    async def test_milestones_listed(self, client: AsyncClient):
        response = await client.get("/api/v1/milestones")
        assert response.status_code == 200
        assert response.json() == []
