"""Base chain JSON-RPC client: block number, wallet history, token transfers."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import httpx
import structlog

from tradoor.config import get_settings
from tradoor.errors import UpstreamUnavailable
from tradoor.points.calculator import ChainTransaction

logger = structlog.get_logger()

TRANSFER_TOPIC0 = (
    "0xddf252ad1be2c89b69c2b068fc378daa"
    "952ba7f163c4a11628f55a4df523b3ef"
)
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class TransferLog:
    """A decoded ERC-20 ``Transfer(from, to, value)`` event."""

    tx_hash: str
    block_number: int
    log_index: int
    from_address: str
    to_address: str
    value: int


def parse_hex_int(value: str | None) -> int:
    if not value:
        return 0
    return int(value, 16)


def topic_address(address: str) -> str:
    return "0x" + ("0" * 24) + address.lower().removeprefix("0x")


def decode_topic_address(topic: str) -> str:
    return "0x" + topic.lower().removeprefix("0x")[-40:]


def decode_transfer(log: dict[str, Any]) -> TransferLog | None:
    """Decode a raw log, or None if it is not a well-formed Transfer."""
    topics = log.get("topics") or []
    if len(topics) < 3 or topics[0].lower() != TRANSFER_TOPIC0:
        return None
    return TransferLog(
        tx_hash=log["transactionHash"],
        block_number=parse_hex_int(log.get("blockNumber")),
        log_index=parse_hex_int(log.get("logIndex")),
        from_address=decode_topic_address(topics[1]),
        to_address=decode_topic_address(topics[2]),
        value=parse_hex_int(log.get("data")),
    )


class ChainClient:
    """Minimal JSON-RPC client. Transport and RPC errors raise UpstreamUnavailable."""

    def __init__(self, url: str, timeout: float = 10.0, client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._id = 1

    async def aclose(self) -> None:
        await self._client.aclose()

    async def call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": self._id, "method": method, "params": params}
        self._id += 1
        try:
            response = await self._client.post(self.url, json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamUnavailable(f"RPC {method} failed: {exc}") from exc
        if "error" in data:
            raise UpstreamUnavailable(f"RPC {method} error: {data['error']}")
        return data.get("result")

    async def get_block_number(self) -> int:
        return parse_hex_int(await self.call("eth_blockNumber", []))

    async def get_logs(
        self,
        from_block: int,
        to_block: int,
        address: str | None = None,
        topics: list[Any] | None = None,
    ) -> list[dict[str, Any]]:
        f: dict[str, Any] = {"fromBlock": hex(from_block), "toBlock": hex(to_block)}
        if address:
            f["address"] = address
        if topics:
            f["topics"] = topics
        return await self.call("eth_getLogs", [f]) or []

    async def get_transaction(self, tx_hash: str) -> ChainTransaction | None:
        tx = await self.call("eth_getTransactionByHash", [tx_hash])
        if not tx:
            return None
        return ChainTransaction(
            hash=tx["hash"],
            block_number=parse_hex_int(tx.get("blockNumber")),
            from_address=(tx.get("from") or "").lower(),
            to_address=(tx.get("to") or "").lower(),
            value=parse_hex_int(tx.get("value")),
            gas=parse_hex_int(tx.get("gas")),
            gas_price=parse_hex_int(tx.get("gasPrice")),
        )

    async def get_wallet_transactions(self, address: str, block_window: int | None = None) -> list[ChainTransaction]:
        """Transactions behind the logs the wallet emitted in the recent block window.

        Individual transaction lookups that fail are skipped; a failed block
        or log query raises UpstreamUnavailable.
        """
        window = block_window if block_window is not None else get_settings().wallet_scan_block_window
        latest = await self.get_block_number()
        logs = await self.get_logs(max(0, latest - window), latest, address=address)

        transactions: list[ChainTransaction] = []
        seen: set[str] = set()
        for log in logs:
            tx_hash = log.get("transactionHash")
            if not tx_hash or tx_hash in seen:
                continue
            seen.add(tx_hash)
            try:
                tx = await self.get_transaction(tx_hash)
            except UpstreamUnavailable:
                logger.warning("chain_transaction_lookup_failed", tx_hash=tx_hash)
                continue
            if tx is not None:
                transactions.append(tx)
        return transactions

    async def get_transfer_logs(
        self,
        token: str,
        from_block: int,
        to_block: int,
        participant: str | None = None,
    ) -> list[TransferLog]:
        """Decoded token transfers, optionally only those sent or received by ``participant``."""
        if participant is None:
            raw = await self.get_logs(from_block, to_block, address=token, topics=[TRANSFER_TOPIC0])
        else:
            topic = topic_address(participant)
            raw = await self.get_logs(from_block, to_block, address=token, topics=[TRANSFER_TOPIC0, topic])
            raw += await self.get_logs(from_block, to_block, address=token, topics=[TRANSFER_TOPIC0, None, topic])

        transfers: dict[tuple[str, int], TransferLog] = {}
        for log in raw:
            transfer = decode_transfer(log)
            if transfer is not None:
                transfers[(transfer.tx_hash, transfer.log_index)] = transfer
        return sorted(transfers.values(), key=lambda t: (t.block_number, t.log_index))


@lru_cache
def get_chain_client() -> ChainClient:
    """Get the shared chain client."""
    settings = get_settings()
    return ChainClient(settings.base_rpc_url, timeout=settings.rpc_timeout_seconds)
