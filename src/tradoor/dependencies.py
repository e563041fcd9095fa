"""Shared FastAPI dependencies."""

import secrets
from collections.abc import AsyncGenerator

from fastapi import Header, HTTPException

from tradoor.chain.client import ChainClient, get_chain_client
from tradoor.chain.price import PriceOracle, get_price_oracle
from tradoor.config import get_settings
from tradoor.database import get_session as _get_session
from tradoor.redis_client import get_redis_or_none

get_db = _get_session


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """Yield the Redis client, or None when Redis is not configured."""
    yield get_redis_or_none()


def get_chain() -> ChainClient:
    return get_chain_client()


def get_oracle() -> PriceOracle:
    return get_price_oracle()


async def require_admin(x_admin_token: str = Header(default="")) -> None:
    """Guard admin routes with the shared X-Admin-Token secret."""
    expected = get_settings().admin_token
    if not expected:
        raise HTTPException(status_code=403, detail="Admin API disabled")
    if not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=401, detail="Invalid admin token")
