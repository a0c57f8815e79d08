"""
Unit Tests for the Progression Ledger
=====================================

Test Coverage
-------------
- Level-up cascade from a single large award
- Clamping of experience and coins at zero
- Level never decreasing
- Domain event emission
- Validation and serialization
"""

import pytest

from lifephysics.domain.models.base import DomainValidationError
from lifephysics.domain.models.progression import ProgressionLedger
from lifephysics.domain.rewards import RewardResult


def _event_names(model):
    return [event.event_name for event in model.get_pending_events()]


@pytest.mark.unit
@pytest.mark.domain
class TestApplyExperience:
    def test_below_threshold_stays_on_level(self):
        ledger = ProgressionLedger("u1")

        gained = ledger.apply_experience(499)

        assert gained == 0
        assert (ledger.level, ledger.experience) == (1, 499)

    def test_exact_threshold_levels_up(self):
        ledger = ProgressionLedger("u1")

        gained = ledger.apply_experience(500)

        assert gained == 1
        assert (ledger.level, ledger.experience) == (2, 0)

    def test_large_award_cascades_levels(self):
        ledger = ProgressionLedger("u1")

        gained = ledger.apply_experience(5000)

        # 5000 - 500 - 1148 - 1868 = 1484, below the level 4 threshold of 2639
        assert gained == 3
        assert (ledger.level, ledger.experience) == (4, 1484)
        assert _event_names(ledger).count("ledger.leveled_up") == 3

    def test_leveled_up_payloads_are_sequential(self):
        ledger = ProgressionLedger("u1")
        ledger.apply_experience(5000)

        payloads = [
            e.payload for e in ledger.get_pending_events() if e.event_name == "ledger.leveled_up"
        ]

        assert [(p["old_level"], p["new_level"]) for p in payloads] == [(1, 2), (2, 3), (3, 4)]

    def test_negative_delta_clamps_at_zero(self):
        ledger = ProgressionLedger("u1", level=3, experience=100)

        gained = ledger.apply_experience(-500)

        assert gained == 0
        assert ledger.experience == 0

    def test_level_never_decreases(self):
        ledger = ProgressionLedger("u1", level=5, experience=0)

        ledger.apply_experience(-100_000)

        assert ledger.level == 5
        assert ledger.experience == 0

    def test_zero_delta_is_noop(self):
        ledger = ProgressionLedger("u1", experience=10)

        assert ledger.apply_experience(0) == 0
        assert ledger.get_pending_events() == []

    def test_experience_changed_event(self):
        ledger = ProgressionLedger("u1")
        ledger.apply_experience(250)

        event = ledger.get_pending_events()[-1]

        assert event.event_name == "ledger.experience_changed"
        assert event.payload["delta"] == 250
        assert event.payload["experience"] == 250


@pytest.mark.unit
@pytest.mark.domain
class TestApplyCurrency:
    def test_adds_coins(self):
        ledger = ProgressionLedger("u1", coins=10)

        assert ledger.apply_currency(90) == 100

    def test_never_goes_negative(self):
        ledger = ProgressionLedger("u1", coins=10)

        # Reverting a Hard task (base 500) from 10 coins
        assert ledger.apply_currency(-500) == 0
        assert ledger.coins == 0

    def test_currency_event(self):
        ledger = ProgressionLedger("u1", coins=10)
        ledger.apply_currency(-3)

        assert _event_names(ledger) == ["ledger.currency_changed"]

    def test_can_afford(self):
        ledger = ProgressionLedger("u1", coins=500)

        assert ledger.can_afford(500)
        assert not ledger.can_afford(501)


@pytest.mark.unit
@pytest.mark.domain
class TestApplyReward:
    def test_applies_both_deltas(self):
        ledger = ProgressionLedger("u1")

        gained = ledger.apply_reward(RewardResult(experience_delta=600, currency_delta=700))

        assert gained == 1
        assert (ledger.level, ledger.experience, ledger.coins) == (2, 100, 700)

    def test_reversal_never_drives_values_negative(self):
        ledger = ProgressionLedger("u1", experience=20, coins=10)

        ledger.apply_reward(RewardResult(experience_delta=-500, currency_delta=-500))

        assert (ledger.experience, ledger.coins) == (0, 0)


@pytest.mark.unit
@pytest.mark.domain
class TestLedgerState:
    def test_experience_to_next_level_is_current_threshold(self):
        assert ProgressionLedger("u1", level=2).experience_to_next_level == 1148

    def test_experience_remaining(self):
        ledger = ProgressionLedger("u1", level=1, experience=120)

        assert ledger.experience_remaining == 380

    @pytest.mark.parametrize(
        "kwargs, field",
        [({"level": 0}, "level"), ({"experience": -1}, "experience"), ({"coins": -5}, "coins")],
    )
    def test_validation(self, kwargs, field):
        with pytest.raises(DomainValidationError) as exc_info:
            ProgressionLedger("u1", **kwargs)

        assert exc_info.value.field == field

    def test_from_dict_accepts_xp_key(self):
        ledger = ProgressionLedger.from_dict("u1", {"level": 3, "xp": 42, "coins": 7})

        assert ledger.to_dict() == {"level": 3, "experience": 42, "coins": 7}

    def test_from_dict_defaults(self):
        ledger = ProgressionLedger.from_dict("u1", {})

        assert ledger.to_dict() == {"level": 1, "experience": 0, "coins": 0}
