"""Tier thresholds and resolution.

The single source of truth for tiers: the profile updater, the leaderboard
and the progress display all call ``resolve_tier``.
"""

from __future__ import annotations

from enum import Enum


class Tier(str, Enum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"
    DIAMOND = "Diamond"


TIER_THRESHOLDS: list[dict] = [
    {"tier": Tier.BRONZE, "min_points": 0},
    {"tier": Tier.SILVER, "min_points": 1_000},
    {"tier": Tier.GOLD, "min_points": 5_000},
    {"tier": Tier.PLATINUM, "min_points": 15_000},
    {"tier": Tier.DIAMOND, "min_points": 50_000},
]


def resolve_tier(points: float) -> str:
    """Map cumulative points to a tier label."""
    current = TIER_THRESHOLDS[0]
    for threshold in TIER_THRESHOLDS:
        if points >= threshold["min_points"]:
            current = threshold
    return current["tier"].value


def tier_progress(points: float) -> dict:
    """Progress towards the next tier, for the profile display."""
    index = 0
    for i, threshold in enumerate(TIER_THRESHOLDS):
        if points >= threshold["min_points"]:
            index = i

    current = TIER_THRESHOLDS[index]
    if index == len(TIER_THRESHOLDS) - 1:
        return {
            "tier": current["tier"].value,
            "next_tier": None,
            "points": points,
            "points_to_next": 0,
            "percentage": 100.0,
        }

    next_threshold = TIER_THRESHOLDS[index + 1]
    span = next_threshold["min_points"] - current["min_points"]
    into = max(0, points - current["min_points"])
    return {
        "tier": current["tier"].value,
        "next_tier": next_threshold["tier"].value,
        "points": points,
        "points_to_next": max(0, next_threshold["min_points"] - points),
        "percentage": round(min(into / span * 100, 100.0), 2),
    }
