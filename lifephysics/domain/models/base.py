"""
Base domain model classes for Life Physics.

Purpose
-------
Foundational abstractions for the rich domain models that hold the
progression rules: identity, equality, domain events and validation.

Responsibilities
----------------
- Define base Entity class with identity and equality semantics
- Define base AggregateRoot class for consistency boundaries
- Track domain events so services can hand them to the event bus
- Provide validators for malformed construction input

Non-Responsibilities
--------------------
- Persistence (handled by SyncService and LocalStateStore)
- Database schema (handled by SQLAlchemy models)
- Service orchestration (handled by TrackerService)

Design Notes
------------
Value types (``RewardResult``, ``Avatar``, ``Prerequisite`` snapshots) are
plain dataclasses. Entities are compared by id only.

Usage Example
-------------
>>> class Ledger(AggregateRoot):
...     def credit(self, amount: int) -> None:
...         self.coins += amount
...         self.add_domain_event("ledger.currency_changed", {
...             "user_id": self.id,
...             "coins": self.coins,
...         })
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ============================================================================
# DOMAIN EVENTS
# ============================================================================


@dataclass
class DomainEvent:
    """
    A state change that already happened inside an aggregate.

    Attributes
    ----------
    event_name : str
        Dotted event name (e.g., "ledger.leveled_up")
    payload : Dict[str, Any]
        Event payload with relevant data
    occurred_at : datetime
        When the event occurred (UTC)
    """

    event_name: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================================
# ENTITY
# ============================================================================


class Entity(ABC):
    """
    Base class for entities with identity.

    Two entities with the same id are the same entity even when their
    attributes differ. Subclasses call ``super().__init__(entity_id)`` and
    record significant transitions with ``add_domain_event``.
    """

    def __init__(self, entity_id: str) -> None:
        self._id = entity_id
        self._domain_events: List[DomainEvent] = []

    @property
    def id(self) -> str:
        """Entity id (immutable)."""
        return self._id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, self.__class__):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash((self.__class__.__name__, self.id))

    def add_domain_event(self, event_name: str, payload: Dict[str, Any]) -> None:
        """
        Record a domain event to be published later.

        Parameters
        ----------
        event_name : str
            Event name (e.g., "avatar.purchased")
        payload : Dict[str, Any]
            Event payload with relevant data
        """
        self._domain_events.append(DomainEvent(event_name=event_name, payload=payload))

    def clear_domain_events(self) -> List[DomainEvent]:
        """Return and forget all pending domain events."""
        events = self._domain_events.copy()
        self._domain_events.clear()
        return events

    def get_pending_events(self) -> List[DomainEvent]:
        return self._domain_events.copy()


class AggregateRoot(Entity):
    """
    Entry point and consistency boundary for a cluster of domain objects.

    ``Task`` owns its prerequisites; ``ProgressionLedger`` and
    ``AvatarWardrobe`` own their balances and sets. Callers never mutate the
    internals directly.
    """

    pass


# ============================================================================
# VALIDATION
# ============================================================================


class DomainValidationError(Exception):
    """
    Raised when a domain object is constructed from malformed input.

    Business denials (not enough coins, unknown ids) are never raised; they
    are reported through return values.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def validate_positive(value: int, field_name: str) -> None:
    if value <= 0:
        raise DomainValidationError(
            f"{field_name} must be positive, got {value}",
            field=field_name,
        )


def validate_non_negative(value: int, field_name: str) -> None:
    if value < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {value}",
            field=field_name,
        )


def validate_not_empty(value: str, field_name: str) -> None:
    """
    Validate that a string is not empty.

    Raises
    ------
    DomainValidationError
        If value is empty or whitespace-only
    """
    if not value or not value.strip():
        raise DomainValidationError(
            f"{field_name} cannot be empty",
            field=field_name,
        )
