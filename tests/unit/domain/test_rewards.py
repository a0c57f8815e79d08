"""
Unit Tests for the Reward Roller
================================

Purpose
-------
Exercise every branch of the roll with scripted random sources: plain,
critical, loot, and reversal.

Test Coverage
-------------
- Task and prerequisite completion (critical / loot / both / neither)
- Reversal: always the flat base value, whatever the completion granted
- Reward table loading from a config mapping
"""

import pytest

from lifephysics.domain.models.base import DomainValidationError
from lifephysics.domain.models.task import Difficulty
from lifephysics.domain.rewards import RewardResult, RewardRoller, RewardTable

MISS = 0.99


@pytest.mark.unit
@pytest.mark.domain
class TestTaskCompletion:
    @pytest.mark.parametrize(
        "difficulty, base",
        [(Difficulty.EASY, 100), (Difficulty.MEDIUM, 250), (Difficulty.HARD, 500)],
    )
    def test_plain_completion_awards_base(self, scripted_rng, difficulty, base):
        roller = RewardRoller(rng=scripted_rng([MISS, MISS]))

        result = roller.roll_task(difficulty, is_completing=True)

        assert result == RewardResult(experience_delta=base, currency_delta=base)
        assert result.is_critical is False

    def test_critical_multiplies_and_floors(self, scripted_rng):
        roller = RewardRoller(rng=scripted_rng([0.05, MISS]))

        result = roller.roll_task(Difficulty.EASY, is_completing=True)

        assert result.experience_delta == 250  # floor(100 * 2.5)
        assert result.currency_delta == 250
        assert result.is_critical is True

    def test_critical_threshold_is_strict(self, scripted_rng):
        roller = RewardRoller(rng=scripted_rng([0.20, MISS]))

        result = roller.roll_task(Difficulty.MEDIUM, is_completing=True)

        assert result.experience_delta == 250
        assert result.is_critical is False

    def test_loot_adds_to_currency_only(self, scripted_rng):
        rng = scripted_rng([MISS, 0.10], ints=[137])
        roller = RewardRoller(rng=rng)

        result = roller.roll_task(Difficulty.HARD, is_completing=True)

        assert result.experience_delta == 500
        assert result.currency_delta == 637
        assert result.loot_bonus == 137
        assert rng.randrange_calls == [(50, 200)]

    def test_loot_alone_flags_critical(self, scripted_rng):
        roller = RewardRoller(rng=scripted_rng([MISS, 0.0], ints=[50]))

        result = roller.roll_task(Difficulty.EASY, is_completing=True)

        assert result.is_critical is True
        assert result.experience_delta == 100

    def test_critical_and_loot_together(self, scripted_rng):
        roller = RewardRoller(rng=scripted_rng([0.0, 0.0], ints=[199]))

        result = roller.roll_task(Difficulty.MEDIUM, is_completing=True)

        assert result.experience_delta == 625  # floor(250 * 2.5)
        assert result.currency_delta == 625 + 199


@pytest.mark.unit
@pytest.mark.domain
class TestPrerequisiteCompletion:
    def test_plain_completion(self, scripted_rng):
        roller = RewardRoller(rng=scripted_rng([MISS, MISS]))

        result = roller.roll_prerequisite(is_completing=True)

        assert (result.experience_delta, result.currency_delta) == (25, 25)
        assert result.is_critical is False

    def test_critical_quadruples(self, scripted_rng):
        roller = RewardRoller(rng=scripted_rng([0.14, MISS]))

        result = roller.roll_prerequisite(is_completing=True)

        assert result.experience_delta == 100
        assert result.currency_delta == 100
        assert result.is_critical is True

    def test_loot_is_fixed_bonus(self, scripted_rng):
        rng = scripted_rng([MISS, 0.09])
        roller = RewardRoller(rng=rng)

        result = roller.roll_prerequisite(is_completing=True)

        assert result.experience_delta == 25
        assert result.currency_delta == 50
        assert result.is_critical is True
        assert rng.randrange_calls == []


@pytest.mark.unit
@pytest.mark.domain
class TestReversal:
    @pytest.mark.parametrize(
        "difficulty, base",
        [(Difficulty.EASY, 100), (Difficulty.MEDIUM, 250), (Difficulty.HARD, 500)],
    )
    def test_reversal_subtracts_base(self, scripted_rng, difficulty, base):
        rng = scripted_rng()
        roller = RewardRoller(rng=rng)

        result = roller.roll_task(difficulty, is_completing=False)

        assert result == RewardResult(experience_delta=-base, currency_delta=-base)
        assert rng.draws == []  # nothing drawn

    def test_prerequisite_reversal_subtracts_base(self, scripted_rng):
        roller = RewardRoller(rng=scripted_rng())

        result = roller.roll_prerequisite(is_completing=False)

        assert result == RewardResult(experience_delta=-25, currency_delta=-25)

    def test_flat_penalty_reversal_keeps_critical_bonus(self, scripted_rng):
        """
        Undoing a critical completion only takes back the base value.

        Kept as-is: the net gain after complete-then-revert is positive.
        """
        roller = RewardRoller(rng=scripted_rng([0.0, 0.0], ints=[150]))

        granted = roller.roll_task(Difficulty.MEDIUM, is_completing=True)
        reverted = roller.roll_task(Difficulty.MEDIUM, is_completing=False)

        assert granted.experience_delta + reverted.experience_delta == 625 - 250
        assert granted.currency_delta + reverted.currency_delta == 625 + 150 - 250

    def test_flat_penalty_reversal_is_symmetric_without_luck(self, scripted_rng):
        roller = RewardRoller(rng=scripted_rng([MISS, MISS]))

        granted = roller.roll_task(Difficulty.MEDIUM, is_completing=True)
        reverted = roller.roll_task(Difficulty.MEDIUM, is_completing=False)

        assert granted.experience_delta + reverted.experience_delta == 0
        assert granted.currency_delta + reverted.currency_delta == 0


@pytest.mark.unit
@pytest.mark.domain
class TestRewardTable:
    def test_defaults(self):
        table = RewardTable()

        assert table.base_for(Difficulty.EASY) == 100
        assert table.base_for(Difficulty.HARD) == 500
        assert table.prerequisite_base_experience == 25

    def test_from_mapping_overrides_known_keys(self):
        table = RewardTable.from_mapping(
            {
                "base_experience": {"hard": 800},
                "task": {"critical_chance": 0.5, "unknown_key": 1},
                "prerequisite": {"loot_bonus": 40},
            }
        )

        assert table.base_for(Difficulty.HARD) == 800
        assert table.base_for(Difficulty.EASY) == 100
        assert table.task_critical_chance == 0.5
        assert table.prerequisite_loot_bonus == 40

    def test_from_mapping_keeps_fractional_multipliers(self, scripted_rng):
        table = RewardTable.from_mapping(
            {"prerequisite": {"critical_multiplier": 4.5}, "task": {"loot_min": "60"}}
        )

        assert table.prerequisite_critical_multiplier == 4.5
        assert table.task_loot_min == 60
        roller = RewardRoller(table=table, rng=scripted_rng([0.0, MISS]))
        # floor(25 * 4.5)
        assert roller.roll_prerequisite(True).experience_delta == 112

    def test_from_mapping_none_gives_defaults(self):
        assert RewardTable.from_mapping(None) == RewardTable()

    def test_from_mapping_rejects_unknown_difficulty(self):
        with pytest.raises(DomainValidationError):
            RewardTable.from_mapping({"base_experience": {"legendary": 1}})

    def test_roller_uses_custom_table(self, scripted_rng):
        table = RewardTable.from_mapping({"base_experience": {"easy": 10}})
        roller = RewardRoller(table=table, rng=scripted_rng([MISS, MISS]))

        assert roller.roll_task(Difficulty.EASY, True).experience_delta == 10


@pytest.mark.unit
@pytest.mark.domain
def test_reward_result_none_is_empty():
    result = RewardResult.none()

    assert result.is_empty
    assert result.to_dict() == {
        "experience_delta": 0,
        "currency_delta": 0,
        "is_critical": False,
        "loot_bonus": 0,
    }
