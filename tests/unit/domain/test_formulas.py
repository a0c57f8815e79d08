"""
Unit Tests for the Leveling Curve
=================================

Test Coverage
-------------
- Known thresholds of ``floor(500 * level ** 1.2)``
- Strict monotonicity
- Rejection of levels below 1
"""

import math

import pytest

from lifephysics.domain.formulas import experience_required


@pytest.mark.unit
@pytest.mark.domain
class TestExperienceRequired:
    @pytest.mark.parametrize(
        "level, expected",
        [(1, 500), (2, 1148), (3, 1868), (4, 2639), (10, 7924)],
    )
    def test_known_thresholds(self, level, expected):
        assert experience_required(level) == expected

    def test_matches_closed_form(self):
        for level in range(1, 200):
            assert experience_required(level) == math.floor(500 * level**1.2)

    def test_strictly_increasing(self):
        thresholds = [experience_required(level) for level in range(1, 500)]
        assert all(a < b for a, b in zip(thresholds, thresholds[1:]))

    def test_returns_int(self):
        assert isinstance(experience_required(7), int)

    @pytest.mark.parametrize("level", [0, -1])
    def test_rejects_level_below_one(self, level):
        with pytest.raises(ValueError):
            experience_required(level)
