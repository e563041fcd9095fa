"""Achievement requirement parsing and evaluation tests."""

from types import SimpleNamespace

import pytest

from tradoor.achievements.service import Requirement, RequirementType
from tradoor.db.models import Achievement
from tradoor.errors import ValidationFailed


def _achievement(requirement_type: str, value: float, timeframe: str = "all_time") -> Achievement:
    return Achievement(
        id="test_achievement",
        name="Test",
        requirement_type=requirement_type,
        requirement_value=value,
        timeframe=timeframe,
    )


def _profile(**overrides):
    fields = {
        "total_transactions": 0,
        "total_points": 0,
        "weekly_streak": 0,
        "ptradoor_balance": 0.0,
        "referrals": 0,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestRequirementParsing:
    @pytest.mark.parametrize("kind", ["transactions", "points", "streak", "balance", "referrals"])
    def test_known_types(self, kind):
        requirement = Requirement.from_achievement(_achievement(kind, 5))
        assert requirement.kind is RequirementType(kind)
        assert requirement.threshold == 5

    def test_unknown_type_is_validation_error(self):
        with pytest.raises(ValidationFailed, match="unknown requirement type"):
            Requirement.from_achievement(_achievement("volume", 5))


class TestRequirementEvaluation:
    def test_threshold_inclusive(self):
        requirement = Requirement.from_achievement(_achievement("points", 1_000))
        assert requirement.is_met(_profile(total_points=1_000))
        assert not requirement.is_met(_profile(total_points=999))

    def test_balance_uses_token_balance(self):
        requirement = Requirement.from_achievement(_achievement("balance", 1_000))
        assert requirement.progress(_profile(ptradoor_balance=250.5)) == 250.5

    def test_streak_uses_weekly_streak(self):
        requirement = Requirement.from_achievement(_achievement("streak", 7))
        assert requirement.is_met(_profile(weekly_streak=7))

    def test_daily_transactions_use_daily_count(self):
        """A daily requirement ignores the lifetime counter."""
        requirement = Requirement.from_achievement(_achievement("transactions", 10, timeframe="daily"))
        profile = _profile(total_transactions=500)
        assert not requirement.is_met(profile, daily_transactions=3)
        assert requirement.is_met(profile, daily_transactions=10)
