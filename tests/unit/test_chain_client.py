"""Chain RPC client and price oracle tests over a mocked HTTP transport."""

from __future__ import annotations

import json

import httpx
import pytest

from tradoor.chain.client import (
    TRANSFER_TOPIC0,
    ChainClient,
    decode_transfer,
    topic_address,
)
from tradoor.chain.price import PriceOracle
from tradoor.errors import UpstreamUnavailable

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
RPC_URL = "https://rpc.test"


def _log(tx_hash: str, sender: str, receiver: str, value: int, block: int = 10, index: int = 0) -> dict:
    return {
        "transactionHash": tx_hash,
        "blockNumber": hex(block),
        "logIndex": hex(index),
        "topics": [TRANSFER_TOPIC0, topic_address(sender), topic_address(receiver)],
        "data": hex(value),
    }


def _rpc_client(handler) -> ChainClient:
    return ChainClient(RPC_URL, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestDecodeTransfer:
    def test_decodes_transfer(self):
        transfer = decode_transfer(_log("0xaa", ALICE, BOB, 5 * 10**18, block=42, index=3))
        assert transfer.from_address == ALICE
        assert transfer.to_address == BOB
        assert transfer.value == 5 * 10**18
        assert transfer.block_number == 42
        assert transfer.log_index == 3

    def test_other_event_ignored(self):
        log = _log("0xaa", ALICE, BOB, 1)
        log["topics"][0] = "0x" + "00" * 32
        assert decode_transfer(log) is None

    def test_short_topics_ignored(self):
        assert decode_transfer({"transactionHash": "0xaa", "topics": [TRANSFER_TOPIC0]}) is None


class TestChainClient:
    """Test JSON-RPC calls and error mapping."""

    @pytest.mark.asyncio
    async def test_block_number(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content)["method"] == "eth_blockNumber"
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x3e8"})

        assert await _rpc_client(handler).get_block_number() == 1_000

    @pytest.mark.asyncio
    async def test_rpc_error_is_upstream_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000}})

        with pytest.raises(UpstreamUnavailable):
            await _rpc_client(handler).get_block_number()

    @pytest.mark.asyncio
    async def test_http_error_is_upstream_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502)

        with pytest.raises(UpstreamUnavailable):
            await _rpc_client(handler).get_block_number()

    @pytest.mark.asyncio
    async def test_participant_transfers_deduplicated(self):
        """A self-transfer matches both the sender and receiver query once."""
        logs = [_log("0xaa", ALICE, ALICE, 1, block=12), _log("0xbb", BOB, ALICE, 2, block=11)]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": logs})

        transfers = await _rpc_client(handler).get_transfer_logs("0xtoken", 0, 20, participant=ALICE)

        assert [t.tx_hash for t in transfers] == ["0xbb", "0xaa"]

    @pytest.mark.asyncio
    async def test_wallet_transactions_skip_failed_lookups(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            method = body["method"]
            if method == "eth_blockNumber":
                result = "0x64"
            elif method == "eth_getLogs":
                result = [{"transactionHash": "0xaa"}, {"transactionHash": "0xbb"}, {"transactionHash": "0xaa"}]
            elif body["params"][0] == "0xbb":
                return httpx.Response(500)
            else:
                result = {
                    "hash": "0xaa",
                    "blockNumber": "0x60",
                    "from": ALICE,
                    "to": BOB,
                    "value": hex(10**18),
                    "gas": hex(21_000),
                    "gasPrice": hex(10**9),
                }
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

        transactions = await _rpc_client(handler).get_wallet_transactions(ALICE, block_window=50)

        assert len(transactions) == 1
        assert transactions[0].gas == 21_000
        assert transactions[0].value == 10**18


class TestPriceOracle:
    """Test the memoized DEX price lookup."""

    @staticmethod
    def _oracle(handler, clock=None) -> PriceOracle:
        kwargs = {"clock": clock} if clock else {}
        return PriceOracle(
            "https://prices.test/tokens",
            "0xtoken",
            cache_seconds=30,
            fallback_price=0.045,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            **kwargs,
        )

    @pytest.mark.asyncio
    async def test_deepest_pair_wins(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"pairs": [
                {"priceUsd": "0.10", "liquidity": {"usd": 1_000}},
                {"priceUsd": "0.05", "liquidity": {"usd": 90_000}},
            ]})

        assert await self._oracle(handler).get_token_price() == 0.05

    @pytest.mark.asyncio
    async def test_fallback_on_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        oracle = self._oracle(handler)
        assert await oracle.get_token_price() == 0.045
        assert await oracle.usd_to_tokens(0.9) == pytest.approx(20.0)

    @pytest.mark.asyncio
    async def test_memoized_then_refreshed(self):
        calls = []
        now = [0.0]

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url)
            return httpx.Response(200, json={"pairs": [{"priceUsd": "0.5", "liquidity": {"usd": 1}}]})

        oracle = self._oracle(handler, clock=lambda: now[0])
        await oracle.get_token_price()
        await oracle.get_token_price()
        assert len(calls) == 1

        now[0] = 31.0
        await oracle.get_token_price()
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_last_good_price_kept_on_failure(self):
        now = [0.0]
        responses = [
            httpx.Response(200, json={"pairs": [{"priceUsd": "0.5", "liquidity": {"usd": 1}}]}),
            httpx.Response(500),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0) if responses else httpx.Response(500)

        oracle = self._oracle(handler, clock=lambda: now[0])
        assert await oracle.get_token_price() == 0.5
        now[0] = 60.0
        assert await oracle.get_token_price() == 0.5
        assert await oracle.wei_to_usd(4 * 10**18) == 2.0
