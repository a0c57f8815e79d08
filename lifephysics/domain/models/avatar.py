"""
Avatar Ownership Ledger for Life Physics.

Purpose
-------
Fixed cosmetic catalog plus the per-user set of owned avatars and the
single equipped one.

Catalog
-------
``default`` ("Origin Shell", free) followed by ``shell-0`` .. ``shell-99``,
where ``shell-i`` costs ``(i + 1) * 500`` and is named ``Shell v{i+1}.0``.

Invariants
----------
- ``default`` is always owned.
- The selected avatar is always owned.
- ``buy`` and ``select`` change nothing when they return ``False``.

Purchases spend coins held by the ``ProgressionLedger`` passed in; the
wardrobe never holds a balance of its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from lifephysics.domain.models.base import AggregateRoot, DomainValidationError
from lifephysics.domain.models.progression import ProgressionLedger

DEFAULT_AVATAR_ID = "default"
CATALOG_SIZE = 100
PRICE_STEP = 500


@dataclass(frozen=True)
class Avatar:
    id: str
    name: str
    price: int


def build_catalog() -> List[Avatar]:
    """The 101-entry catalog, default first."""
    catalog = [Avatar(id=DEFAULT_AVATAR_ID, name="Origin Shell", price=0)]
    for index in range(CATALOG_SIZE):
        catalog.append(
            Avatar(id=f"shell-{index}", name=f"Shell v{index + 1}.0", price=(index + 1) * PRICE_STEP)
        )
    return catalog


AVATAR_CATALOG: List[Avatar] = build_catalog()
_CATALOG_BY_ID: Dict[str, Avatar] = {avatar.id: avatar for avatar in AVATAR_CATALOG}


def get_avatar(avatar_id: str) -> Optional[Avatar]:
    return _CATALOG_BY_ID.get(avatar_id)


class AvatarWardrobe(AggregateRoot):
    """
    Owned avatar ids and the equipped one, for one user.

    Usage Example
    -------------
    >>> wardrobe = AvatarWardrobe("guest")
    >>> ledger = ProgressionLedger("guest", coins=500)
    >>> wardrobe.buy("shell-0", 500, ledger)
    True
    >>> wardrobe.select("shell-0")
    True
    """

    def __init__(
        self,
        user_id: str,
        owned_ids: Optional[Iterable[str]] = None,
        selected_id: str = DEFAULT_AVATAR_ID,
    ) -> None:
        super().__init__(user_id)
        self._owned: Set[str] = set(owned_ids or ())
        self._owned.add(DEFAULT_AVATAR_ID)

        if selected_id not in self._owned:
            raise DomainValidationError(
                f"Selected avatar {selected_id!r} is not owned",
                field="selected_avatar_id",
            )
        self._selected = selected_id

    @property
    def owned_ids(self) -> List[str]:
        """Owned ids with ``default`` first, then in catalog order."""
        order = {avatar.id: index for index, avatar in enumerate(AVATAR_CATALOG)}
        return sorted(self._owned, key=lambda avatar_id: (order.get(avatar_id, len(order)), avatar_id))

    @property
    def selected_id(self) -> str:
        return self._selected

    def owns(self, avatar_id: str) -> bool:
        return avatar_id in self._owned

    def buy(self, avatar_id: str, price: int, ledger: ProgressionLedger) -> bool:
        """
        Buy an avatar with coins from ``ledger``.

        Succeeds only when ``price`` is non-negative, the ledger can afford
        it and the avatar is not owned yet. The price is taken as given; the
        catalog price is not consulted.
        """
        if price < 0 or avatar_id in self._owned or not ledger.can_afford(price):
            return False

        ledger.apply_currency(-price)
        self._owned.add(avatar_id)
        self.add_domain_event(
            "avatar.purchased",
            {"user_id": self.id, "avatar_id": avatar_id, "price": price, "coins": ledger.coins},
        )
        return True

    def select(self, avatar_id: str) -> bool:
        if avatar_id not in self._owned:
            return False

        previous = self._selected
        self._selected = avatar_id
        self.add_domain_event(
            "avatar.selected",
            {"user_id": self.id, "avatar_id": avatar_id, "previous_avatar_id": previous},
        )
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {"owned_avatar_ids": self.owned_ids, "selected_avatar_id": self._selected}

    @classmethod
    def from_dict(cls, user_id: str, data: Dict[str, Any]) -> "AvatarWardrobe":
        owned = data.get("owned_avatar_ids") or [DEFAULT_AVATAR_ID]
        selected = data.get("selected_avatar_id") or DEFAULT_AVATAR_ID
        # A selection that is no longer owned falls back to the default shell.
        if selected not in owned and selected != DEFAULT_AVATAR_ID:
            selected = DEFAULT_AVATAR_ID
        return cls(user_id=user_id, owned_ids=owned, selected_id=selected)
