"""
Reward Roller for Life Physics.

Purpose
-------
Turn a toggle (task or prerequisite, completing or reverting) into an
experience/coin delta.

Completion
----------
1. First draw: critical when ``draw < critical_chance``. Experience is
   ``floor(base * critical_multiplier)`` on a critical, ``base`` otherwise.
2. Second draw: loot when ``draw < loot_chance``. Task loot is a third draw
   from ``randrange(loot_min, loot_max)``; prerequisite loot is a fixed bonus.
3. Coins = experience + loot. ``is_critical`` is set by either roll.

Reversal
--------
Reverting subtracts the flat base value from both experience and coins and
draws nothing. It does not look up what the completion actually granted, so
undoing a critical completion keeps the bonus.

Randomness
----------
The roller takes an injected source with ``random()`` and
``randrange(start, stop)``. Production uses an unseeded ``random.Random``;
tests pass scripted sources.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Protocol, get_type_hints

from lifephysics.domain.models.task import Difficulty


class RandomSource(Protocol):
    def random(self) -> float: ...

    def randrange(self, start: int, stop: int) -> int: ...


@dataclass(frozen=True)
class RewardResult:
    """Outcome of one roll. ``loot_bonus`` is diagnostic (0 when no loot)."""

    experience_delta: int
    currency_delta: int
    is_critical: bool = False
    loot_bonus: int = 0

    @classmethod
    def none(cls) -> "RewardResult":
        return cls(experience_delta=0, currency_delta=0)

    @property
    def is_empty(self) -> bool:
        return self.experience_delta == 0 and self.currency_delta == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "experience_delta": self.experience_delta,
            "currency_delta": self.currency_delta,
            "is_critical": self.is_critical,
            "loot_bonus": self.loot_bonus,
        }


def _default_base_experience() -> Dict[Difficulty, int]:
    return {Difficulty.EASY: 100, Difficulty.MEDIUM: 250, Difficulty.HARD: 500}


@dataclass(frozen=True)
class RewardTable:
    """Reward constants. Loaded from the ``rewards`` section of balance.yaml."""

    base_experience: Dict[Difficulty, int] = field(default_factory=_default_base_experience)
    task_critical_chance: float = 0.20
    task_critical_multiplier: float = 2.5
    task_loot_chance: float = 0.15
    task_loot_min: int = 50
    task_loot_max: int = 200
    prerequisite_base_experience: int = 25
    prerequisite_critical_chance: float = 0.15
    prerequisite_critical_multiplier: float = 4.0
    prerequisite_loot_chance: float = 0.10
    prerequisite_loot_bonus: int = 25

    def base_for(self, difficulty: Difficulty) -> int:
        return self.base_experience[difficulty]

    @classmethod
    def from_mapping(cls, section: Optional[Mapping[str, Any]]) -> "RewardTable":
        """
        Build a table from a ``rewards`` config section.

        Missing keys keep their defaults, so an absent or partial YAML file
        still yields the standard balance.
        """
        section = section or {}
        defaults = cls()
        overrides: Dict[str, Any] = {}

        base = dict(defaults.base_experience)
        for name, value in (section.get("base_experience") or {}).items():
            base[Difficulty.from_value(str(name))] = int(value)
        overrides["base_experience"] = base

        # Overrides are cast to the annotated type, so 4.5 stays 4.5.
        hints = get_type_hints(cls)
        known = {f.name for f in fields(cls)}
        for prefix in ("task", "prerequisite"):
            sub = section.get(prefix) or {}
            for key, value in sub.items():
                attr = f"{prefix}_{key}"
                if attr in known:
                    overrides[attr] = hints[attr](value)

        return cls(**overrides)


class RewardRoller:
    """
    Rolls rewards against a ``RewardTable`` using an injected random source.

    >>> roller = RewardRoller(RewardTable(), random.Random())
    >>> roller.roll_task(Difficulty.MEDIUM, is_completing=False)
    RewardResult(experience_delta=-250, currency_delta=-250, is_critical=False, loot_bonus=0)
    """

    def __init__(self, table: Optional[RewardTable] = None, rng: Optional[RandomSource] = None):
        self.table = table or RewardTable()
        self.rng: RandomSource = rng if rng is not None else random.Random()

    def roll_task(self, difficulty: Difficulty, is_completing: bool) -> RewardResult:
        base = self.table.base_for(difficulty)
        if not is_completing:
            return self._reversal(base)

        is_critical = self.rng.random() < self.table.task_critical_chance
        experience = math.floor(base * self.table.task_critical_multiplier) if is_critical else base

        loot = 0
        if self.rng.random() < self.table.task_loot_chance:
            loot = self.rng.randrange(self.table.task_loot_min, self.table.task_loot_max)

        return self._completion(experience, loot, is_critical)

    def roll_prerequisite(self, is_completing: bool) -> RewardResult:
        base = self.table.prerequisite_base_experience
        if not is_completing:
            return self._reversal(base)

        is_critical = self.rng.random() < self.table.prerequisite_critical_chance
        experience = (
            math.floor(base * self.table.prerequisite_critical_multiplier) if is_critical else base
        )

        loot = 0
        if self.rng.random() < self.table.prerequisite_loot_chance:
            loot = self.table.prerequisite_loot_bonus

        return self._completion(experience, loot, is_critical)

    @staticmethod
    def _completion(experience: int, loot: int, is_critical: bool) -> RewardResult:
        return RewardResult(
            experience_delta=experience,
            currency_delta=experience + loot,
            is_critical=is_critical or loot > 0,
            loot_bonus=loot,
        )

    @staticmethod
    def _reversal(base: int) -> RewardResult:
        return RewardResult(experience_delta=-base, currency_delta=-base)
