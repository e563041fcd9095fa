"""Redis pub/sub change notifications for live read subscriptions.

Services publish a small JSON payload on a channel after every commit that
changes the underlying rows; WebSocket subscribers re-read and push fresh
snapshots (see ``tradoor.live.router``).
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator

import structlog

logger = structlog.get_logger()

LEADERBOARD_CHANNEL = "tradoor:leaderboard"
STATS_CHANNEL = "tradoor:stats"
MILESTONES_CHANNEL = "tradoor:milestones"


def profile_channel(address: str) -> str:
    return f"tradoor:profile:{address.lower()}"


def transactions_channel(address: str) -> str:
    return f"tradoor:transactions:{address.lower()}"


async def publish_change(redis: object, channel: str, payload: dict | None = None) -> None:
    """Publish a change notification. Never fails the caller."""
    if redis is None:
        return
    try:
        await redis.publish(channel, json.dumps(payload or {}))  # type: ignore[union-attr]
    except Exception:
        logger.warning("change_publish_failed", channel=channel, exc_info=True)


async def listen(redis: object, *channels: str) -> AsyncIterator[dict]:
    """Yield decoded payloads published on ``channels`` until cancelled."""
    pubsub = redis.pubsub()  # type: ignore[union-attr]
    await pubsub.subscribe(*channels)
    try:
        while True:
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message is None:
                continue
            data = message.get("data", b"")
            if isinstance(data, bytes):
                data = data.decode()
            try:
                yield json.loads(data)
            except (json.JSONDecodeError, TypeError):
                logger.warning("change_invalid_message", channel=message.get("channel"))
    finally:
        await pubsub.unsubscribe(*channels)
        await pubsub.aclose()
