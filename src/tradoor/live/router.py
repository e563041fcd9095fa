"""WebSocket change subscriptions: a snapshot on connect, then one per change.

Protocol:
    Server -> Client:
        {"type": "snapshot", "channel": "profile", "data": {...}}
        {"type": "pong"}
        {"type": "error", "message": "..."}
    Client -> Server:
        {"action": "ping"}
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from tradoor.database import get_session_factory
from tradoor.leaderboard.service import get_top_snapshot
from tradoor.live.channels import (
    LEADERBOARD_CHANNEL,
    STATS_CHANNEL,
    listen,
    profile_channel,
    transactions_channel,
)
from tradoor.profiles.service import get_profile_snapshot
from tradoor.redis_client import get_redis_or_none
from tradoor.stats.service import get_stats_snapshot

logger = structlog.get_logger()

router = APIRouter()

Snapshot = Callable[[AsyncSession], Awaitable[Any]]


async def _read(snapshot: Snapshot) -> Any:
    async with get_session_factory()() as db:
        data = await snapshot(db)
    if data is None:
        return None
    if isinstance(data, list):
        return [item.model_dump(mode="json") for item in data]
    return data.model_dump(mode="json")


async def _send(websocket: WebSocket, name: str, snapshot: Snapshot) -> None:
    await websocket.send_json({"type": "snapshot", "channel": name, "data": await _read(snapshot)})


async def _pump(websocket: WebSocket, redis: object, channels: list[str], name: str, snapshot: Snapshot) -> None:
    try:
        async for _change in listen(redis, *channels):
            await _send(websocket, name, snapshot)
    except (WebSocketDisconnect, RuntimeError):
        pass  # Socket closed while sending
    except Exception:
        logger.warning("ws_pump_failed", channel=name, exc_info=True)


async def _serve(websocket: WebSocket, name: str, channels: list[str], snapshot: Snapshot) -> None:
    await websocket.accept()
    await _send(websocket, name, snapshot)

    redis = get_redis_or_none()
    if redis is None:
        await websocket.send_json({"type": "error", "message": "Live updates unavailable"})
        await websocket.close(code=1011)
        return

    pump = asyncio.create_task(_pump(websocket, redis, channels, name, snapshot))
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue
            if msg.get("action") == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                await websocket.send_json({"type": "error", "message": f"Unknown action: {msg.get('action')}"})
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("ws_error", channel=name)
    finally:
        pump.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await pump


@router.websocket("/ws/profile/{address}")
async def profile_updates(websocket: WebSocket, address: str) -> None:
    await _serve(
        websocket,
        "profile",
        [profile_channel(address), transactions_channel(address)],
        lambda db: get_profile_snapshot(db, address),
    )


@router.websocket("/ws/leaderboard")
async def leaderboard_updates(websocket: WebSocket) -> None:
    await _serve(websocket, "leaderboard", [LEADERBOARD_CHANNEL], get_top_snapshot)


@router.websocket("/ws/stats")
async def stats_updates(websocket: WebSocket) -> None:
    await _serve(websocket, "stats", [STATS_CHANNEL], get_stats_snapshot)
