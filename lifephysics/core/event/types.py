"""
Core event types for the Life Physics EventBus.

Priority Levels
---------------
- CRITICAL (0): sequential, awaited, timeout-protected
- HIGH (10): sequential, awaited, timeout-protected
- NORMAL (50): concurrent (asyncio.gather), awaited
- LOW (100): fire-and-forget background tasks. Cloud sync listens here so a
  slow or failing store never delays a toggle.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# JSON-serializable dict; snapshots and domain event payloads both fit.
EventPayload = dict[str, Any]


class ListenerPriority(Enum):
    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


@dataclass(slots=True, frozen=True)
class EventListener:
    """
    A registered listener.

    Attributes
    ----------
    callback:
        Async or sync callable invoked with the event payload.
    priority:
        Execution tier.
    identifier:
        Unique id used for deduplication and unsubscription.
    once:
        Removed from the registry before its first execution.
    """

    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str],
        once: bool,
    ) -> EventListener:
        """Build a listener, deriving ``module.qualname@event`` when no id is given."""
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(callback, "__qualname__", getattr(callback, "__name__", "callback"))
            identifier = f"{module}.{qualname}@{event_name}"

        return cls(callback=callback, priority=priority, identifier=identifier, once=once)
