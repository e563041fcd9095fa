"""pTradoor transfer monitor: turns observed token transfers into trades.

Incoming transfers count as buys and outgoing ones as sells. Transaction
hashes already in the ledger are skipped, so rescanning a block range never
credits a transfer twice.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.chain.client import ZERO_ADDRESS, get_chain_client
from tradoor.chain.price import get_price_oracle
from tradoor.config import get_settings
from tradoor.db.models import UserProfile
from tradoor.errors import UpstreamUnavailable
from tradoor.profiles.service import get_profile, set_last_processed_block
from tradoor.trading.orchestrator import execute_trade
from tradoor.transactions.service import get_transaction_by_hash

logger = structlog.get_logger()


@dataclass
class MonitoringResult:
    processed_transactions: int = 0
    new_points_awarded: int = 0
    skipped_transactions: int = 0
    errors: list[str] = field(default_factory=list)

    def merge(self, other: MonitoringResult) -> None:
        self.processed_transactions += other.processed_transactions
        self.new_points_awarded += other.new_points_awarded
        self.skipped_transactions += other.skipped_transactions
        self.errors.extend(other.errors)


async def monitor_address(
    db: AsyncSession,
    redis: object,
    address: str,
    chain: object | None = None,
    oracle: object | None = None,
    from_block: int | None = None,
    to_block: int | None = None,
) -> MonitoringResult:
    """Process new token transfers to or from one registered wallet."""
    chain = chain or get_chain_client()
    oracle = oracle or get_price_oracle()
    settings = get_settings()
    result = MonitoringResult()

    profile = await get_profile(db, address)
    if profile is None:
        result.errors.append(f"User profile not found: {address}")
        return result

    try:
        if to_block is None:
            to_block = await chain.get_block_number()  # type: ignore[union-attr]
        if from_block is None:
            if profile.last_processed_block is not None:
                from_block = profile.last_processed_block + 1
            else:
                from_block = max(0, to_block - settings.wallet_scan_block_window)
        if from_block > to_block:
            return result

        transfers = await chain.get_transfer_logs(  # type: ignore[union-attr]
            settings.ptradoor_token_address, from_block, to_block, participant=address
        )
    except UpstreamUnavailable as exc:
        result.errors.append(f"Monitoring failed: {exc.message}")
        logger.warning("transfer_monitor_failed", address=address, error=exc.message)
        return result

    wallet = address.lower()
    for transfer in transfers:
        if await get_transaction_by_hash(db, transfer.tx_hash) is not None:
            result.skipped_transactions += 1
            continue

        side = "buy" if transfer.to_address == wallet else "sell"
        usd_amount = await oracle.wei_to_usd(transfer.value)  # type: ignore[union-attr]
        result.processed_transactions += 1

        trade = await execute_trade(
            db, redis, address, side, usd_amount, tx_hash=transfer.tx_hash, oracle=oracle
        )
        if trade.success:
            result.new_points_awarded += trade.points_earned
        else:
            result.errors.append(f"Error processing transaction {transfer.tx_hash}: {trade.error}")

    await set_last_processed_block(db, address, to_block)
    logger.info(
        "transfers_monitored",
        address=address,
        from_block=from_block,
        to_block=to_block,
        transfers=len(transfers),
        processed=result.processed_transactions,
        points=result.new_points_awarded,
    )
    return result


async def monitor_recent(
    db: AsyncSession,
    redis: object,
    chain: object | None = None,
    oracle: object | None = None,
    from_block: int | None = None,
    to_block: int | None = None,
) -> MonitoringResult:
    """Scan recent transfers of the token and process every registered participant."""
    chain = chain or get_chain_client()
    oracle = oracle or get_price_oracle()
    settings = get_settings()
    result = MonitoringResult()

    try:
        if to_block is None:
            to_block = await chain.get_block_number()  # type: ignore[union-attr]
        if from_block is None:
            from_block = max(0, to_block - settings.wallet_scan_block_window)
        transfers = await chain.get_transfer_logs(  # type: ignore[union-attr]
            settings.ptradoor_token_address, from_block, to_block
        )
    except UpstreamUnavailable as exc:
        result.errors.append(f"Batch monitoring failed: {exc.message}")
        logger.warning("transfer_batch_monitor_failed", error=exc.message)
        return result

    participants: set[str] = set()
    for transfer in transfers:
        for party in (transfer.from_address, transfer.to_address):
            if party and party != ZERO_ADDRESS:
                participants.add(party)
    if not participants:
        return result

    # Profiles may be keyed by checksummed addresses
    profiles = await db.execute(select(UserProfile.address))
    registered = {addr.lower(): addr for addr in profiles.scalars()}

    for party in sorted(participants):
        address = registered.get(party)
        if address is None:
            continue
        result.merge(await monitor_address(
            db, redis, address, chain=chain, oracle=oracle, from_block=from_block, to_block=to_block
        ))

    logger.info(
        "transfer_batch_monitored",
        from_block=from_block,
        to_block=to_block,
        participants=len(participants),
        processed=result.processed_transactions,
        points=result.new_points_awarded,
    )
    return result
