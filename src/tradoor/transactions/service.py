"""Append-only transaction ledger."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.cache import get_cache
from tradoor.db.models import Transaction, UserProfile
from tradoor.errors import AlreadyProcessed
from tradoor.live.channels import publish_change, transactions_channel
from tradoor.stats.service import increment_stats

logger = structlog.get_logger()


class TransactionType(str, Enum):
    BUY = "buy"
    SELL = "sell"
    BASE_TRANSACTION = "base_transaction"
    STREAK_BONUS = "streak_bonus"


class TransactionStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


async def get_transaction_by_hash(db: AsyncSession, tx_hash: str) -> Transaction | None:
    result = await db.execute(select(Transaction).where(Transaction.tx_hash == tx_hash))
    return result.scalar_one_or_none()


async def add_transaction(
    db: AsyncSession,
    redis: object,
    *,
    user_address: str,
    type: TransactionType | str,  # noqa: A002
    amount: float,
    points: int,
    price: float | None = None,
    status: TransactionStatus | str = TransactionStatus.COMPLETED,
    tx_hash: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Transaction:
    """Record an immutable transaction and bump the user and platform counters.

    Raises AlreadyProcessed if ``tx_hash`` was recorded before.
    """
    if tx_hash and await get_transaction_by_hash(db, tx_hash) is not None:
        raise AlreadyProcessed(tx_hash)

    now = datetime.now(timezone.utc)
    transaction = Transaction(
        user_address=user_address,
        type=TransactionType(type).value,
        amount=amount,
        price=price,
        points=points,
        status=TransactionStatus(status).value,
        tx_hash=tx_hash,
        tx_metadata=metadata or {},
        timestamp=now,
    )
    db.add(transaction)

    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        if tx_hash:
            raise AlreadyProcessed(tx_hash) from None  # Race: hash recorded concurrently
        raise

    await db.execute(
        update(UserProfile)
        .where(UserProfile.address == user_address)
        .values(
            total_transactions=UserProfile.total_transactions + 1,
            last_active=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await increment_stats(db, transactions=1)
    await db.commit()

    get_cache().clear()
    await publish_change(redis, transactions_channel(user_address), {"transaction_id": transaction.id})

    logger.info(
        "transaction_recorded",
        address=user_address,
        type=transaction.type,
        points=points,
        tx_hash=tx_hash,
    )
    return transaction


async def get_user_transactions(db: AsyncSession, address: str, limit: int = 10) -> list[Transaction]:
    result = await db.execute(
        select(Transaction)
        .where(Transaction.user_address == address)
        .order_by(Transaction.timestamp.desc())
        .limit(limit)
    )
    return list(result.scalars())


async def get_recent_transactions(db: AsyncSession, limit: int = 20) -> list[Transaction]:
    result = await db.execute(
        select(Transaction).order_by(Transaction.timestamp.desc()).limit(limit)
    )
    return list(result.scalars())
