"""
Leveling curve for Life Physics.

The experience needed to clear a level grows polynomially:

    experience_required(level) = floor(500 * level ** 1.2)

Level 1 needs 500, level 2 needs 1148, level 10 needs 7924. The curve is
strictly increasing for every level >= 1.
"""

from __future__ import annotations

import math

BASE_EXPERIENCE = 500
LEVEL_EXPONENT = 1.2


def experience_required(level: int) -> int:
    """
    Experience needed to advance from ``level`` to ``level + 1``.

    Raises
    ------
    ValueError
        If ``level`` is below 1.
    """
    if level < 1:
        raise ValueError(f"level must be >= 1, got {level}")
    return math.floor(BASE_EXPERIENCE * level ** LEVEL_EXPONENT)
