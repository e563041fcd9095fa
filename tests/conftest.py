"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

# Settings are read at import time by tradoor.main, so configure first
os.environ["TRADOOR_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["TRADOOR_ADMIN_TOKEN"] = "test-admin-token"
os.environ["TRADOOR_LOG_FORMAT"] = "console"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from tradoor.achievements.seed import seed_achievements  # noqa: E402
from tradoor.cache import get_cache  # noqa: E402
from tradoor.chain.client import TransferLog  # noqa: E402
from tradoor.config import get_settings  # noqa: E402
from tradoor.database import close_db, create_tables, get_session_factory, init_db  # noqa: E402
from tradoor.errors import UpstreamUnavailable  # noqa: E402
from tradoor.points.calculator import ChainTransaction  # noqa: E402
from tradoor.profiles.service import upsert_profile  # noqa: E402

get_settings.cache_clear()


class FakeChain:
    """In-memory stand-in for the JSON-RPC chain client."""

    def __init__(self) -> None:
        self.wallet_transactions: dict[str, list[ChainTransaction]] = {}
        self.transfers: list[TransferLog] = []
        self.block_number = 1_000
        self.fail = False

    async def get_wallet_transactions(self, address: str, block_window: int | None = None) -> list[ChainTransaction]:
        if self.fail:
            raise UpstreamUnavailable("RPC eth_getLogs failed: connection refused")
        return list(self.wallet_transactions.get(address, []))

    async def get_block_number(self) -> int:
        if self.fail:
            raise UpstreamUnavailable("RPC eth_blockNumber failed: connection refused")
        return self.block_number

    async def get_transfer_logs(
        self,
        token: str,
        from_block: int,
        to_block: int,
        participant: str | None = None,
    ) -> list[TransferLog]:
        if self.fail:
            raise UpstreamUnavailable("RPC eth_getLogs failed: connection refused")
        selected = [t for t in self.transfers if from_block <= t.block_number <= to_block]
        if participant is not None:
            wallet = participant.lower()
            selected = [t for t in selected if wallet in (t.from_address, t.to_address)]
        return selected


class FakeOracle:
    """Fixed-price oracle."""

    def __init__(self, price: float = 1.0) -> None:
        self.price = price

    async def get_token_price(self) -> float:
        return self.price

    async def usd_to_tokens(self, usd_amount: float) -> float:
        return usd_amount / self.price

    async def wei_to_usd(self, value_wei: int) -> float:
        return value_wei / 10**18 * self.price


@pytest.fixture(autouse=True)
def _fresh_cache():
    """Every test starts with an empty process cache."""
    get_cache.cache_clear()
    yield
    get_cache().clear()


@pytest.fixture
def fake_chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def fake_oracle() -> FakeOracle:
    return FakeOracle(price=1.0)


@pytest.fixture
def fake_redis() -> MagicMock:
    """Redis double that records publishes and sorted-set writes."""
    redis = MagicMock()
    redis.publish = AsyncMock(return_value=1)
    redis.zadd = AsyncMock(return_value=1)
    redis.zrevrank = AsyncMock(return_value=None)
    redis.zscore = AsyncMock(return_value=None)
    redis.zcard = AsyncMock(return_value=0)
    redis.pipeline.return_value.execute = AsyncMock(return_value=[])
    return redis


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database with the achievement templates seeded."""
    await init_db(get_settings().database_url)
    await create_tables()
    async with get_session_factory()() as session:
        await seed_achievements(session)
        yield session
    await close_db()


@pytest_asyncio.fixture
async def make_profile(db_session: AsyncSession, fake_chain: FakeChain):
    """Create a profile through the normal first-touch path (no chain history: 0 points)."""

    async def _make(address: str, **fields):
        return await upsert_profile(db_session, None, address, fields or None, chain=fake_chain)

    return _make


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    fake_chain: FakeChain,
    fake_oracle: FakeOracle,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the store, Redis and chain overridden."""
    from tradoor.dependencies import get_chain, get_db, get_oracle, get_redis_dep
    from tradoor.main import create_app

    app = create_app()

    async def _db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def _no_redis() -> AsyncGenerator[object, None]:
        yield None

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_redis_dep] = _no_redis
    app.dependency_overrides[get_chain] = lambda: fake_chain
    app.dependency_overrides[get_oracle] = lambda: fake_oracle

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
