"""pTradoor USD price from DEX Screener, memoized for a short window."""

from __future__ import annotations

import time
from collections.abc import Callable
from functools import lru_cache

import httpx
import structlog

from tradoor.config import get_settings

logger = structlog.get_logger()

WEI_PER_TOKEN = 10**18


class PriceOracle:
    """Token price lookup with a memo and a fixed fallback price.

    A failed lookup returns the last good price if there is one, otherwise
    the fallback.
    """

    def __init__(
        self,
        api_url: str,
        token_address: str,
        cache_seconds: float = 30,
        fallback_price: float = 0.045,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.token_address = token_address
        self.cache_seconds = cache_seconds
        self.fallback_price = fallback_price
        self._client = client or httpx.AsyncClient(timeout=10.0)
        self._clock = clock
        self._price: float | None = None
        self._fetched_at = 0.0

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _fetch(self) -> float:
        response = await self._client.get(f"{self.api_url}/{self.token_address}")
        response.raise_for_status()
        pairs = response.json().get("pairs") or []
        priced = [p for p in pairs if p.get("priceUsd")]
        if not priced:
            raise ValueError("no priced pairs")
        best = max(priced, key=lambda p: float((p.get("liquidity") or {}).get("usd") or 0))
        price = float(best["priceUsd"])
        if price <= 0:
            raise ValueError(f"non-positive price {price}")
        return price

    async def get_token_price(self) -> float:
        if self._price is not None and self._clock() - self._fetched_at < self.cache_seconds:
            return self._price

        try:
            price = await self._fetch()
        except (httpx.HTTPError, ValueError, KeyError) as exc:
            logger.warning("token_price_lookup_failed", error=str(exc))
            return self._price if self._price is not None else self.fallback_price

        self._price = price
        self._fetched_at = self._clock()
        return price

    async def usd_to_tokens(self, usd_amount: float) -> float:
        return usd_amount / await self.get_token_price()

    async def wei_to_usd(self, value_wei: int) -> float:
        return value_wei / WEI_PER_TOKEN * await self.get_token_price()


@lru_cache
def get_price_oracle() -> PriceOracle:
    """Get the shared price oracle."""
    settings = get_settings()
    return PriceOracle(
        settings.price_api_url,
        settings.ptradoor_token_address,
        cache_seconds=settings.price_cache_seconds,
        fallback_price=settings.fallback_token_price,
    )
