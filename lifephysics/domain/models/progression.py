"""
Progression Ledger Domain Model for Life Physics.

Purpose
-------
Hold a user's experience, level and coins, and apply reward deltas to them.

Rules
-----
- Experience overflows into level-ups: while the running total reaches the
  current threshold, the threshold is subtracted and the level increments.
  One large award can clear several levels.
- Experience is clamped at 0 afterwards. A reversal larger than the current
  experience discards the excess; the level never goes down.
- Coins are clamped at 0.

Events
------
- ``ledger.experience_changed``
- ``ledger.leveled_up`` (one per level gained)
- ``ledger.currency_changed``

Usage Example
-------------
>>> ledger = ProgressionLedger("guest")
>>> ledger.apply_experience(5000)
3
>>> ledger.level, ledger.experience
(4, 1484)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

from lifephysics.domain.formulas import experience_required
from lifephysics.domain.models.base import (
    AggregateRoot,
    validate_non_negative,
    validate_positive,
)

if TYPE_CHECKING:
    from lifephysics.domain.rewards import RewardResult


class ProgressionLedger(AggregateRoot):
    """Experience, level and coin balance for one user (keyed by user id)."""

    def __init__(self, user_id: str, level: int = 1, experience: int = 0, coins: int = 0) -> None:
        super().__init__(user_id)
        validate_positive(level, "level")
        validate_non_negative(experience, "experience")
        validate_non_negative(coins, "coins")

        self.level = level
        self.experience = experience
        self.coins = coins

    @property
    def experience_to_next_level(self) -> int:
        """Threshold of the current level (the size of the progress bar)."""
        return experience_required(self.level)

    @property
    def experience_remaining(self) -> int:
        return max(0, self.experience_to_next_level - self.experience)

    def can_afford(self, price: int) -> bool:
        return self.coins >= price

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def apply_experience(self, delta: int) -> int:
        """
        Add (or subtract) experience, cascading level-ups.

        Returns the number of levels gained.
        """
        if delta == 0:
            return 0

        old_level = self.level
        old_experience = self.experience
        total = self.experience + delta

        while total >= experience_required(self.level):
            total -= experience_required(self.level)
            self.level += 1
            self.add_domain_event(
                "ledger.leveled_up",
                {"user_id": self.id, "old_level": self.level - 1, "new_level": self.level},
            )

        self.experience = max(0, total)
        self.add_domain_event(
            "ledger.experience_changed",
            {
                "user_id": self.id,
                "delta": delta,
                "old_experience": old_experience,
                "experience": self.experience,
                "level": self.level,
            },
        )
        return self.level - old_level

    def apply_currency(self, delta: int) -> int:
        """Add (or subtract) coins, floored at zero. Returns the new balance."""
        if delta == 0:
            return self.coins

        old_coins = self.coins
        self.coins = max(0, self.coins + delta)
        self.add_domain_event(
            "ledger.currency_changed",
            {"user_id": self.id, "delta": delta, "old_coins": old_coins, "coins": self.coins},
        )
        return self.coins

    def apply_reward(self, result: RewardResult) -> int:
        """Apply both deltas of a roll. Returns the number of levels gained."""
        levels_gained = self.apply_experience(result.experience_delta)
        self.apply_currency(result.currency_delta)
        return levels_gained

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "experience": self.experience, "coins": self.coins}

    @classmethod
    def from_dict(cls, user_id: str, data: Dict[str, Any]) -> "ProgressionLedger":
        return cls(
            user_id=user_id,
            level=int(data.get("level", 1)),
            experience=int(data.get("experience", data.get("xp", 0))),
            coins=int(data.get("coins", 0)),
        )

    def __repr__(self) -> str:
        return (
            f"ProgressionLedger(user_id={self.id!r}, level={self.level}, "
            f"experience={self.experience}, coins={self.coins})"
        )
