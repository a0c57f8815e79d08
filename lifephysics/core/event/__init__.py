"""
Event system for Life Physics.

Async pub/sub used to decouple the tracker from cloud sync: the tracker's
write-through hook publishes ``state.changed`` and domain events, and
listeners (``SyncService.on_state_changed``) react on their own tier.
"""

from .bus import EventBus
from .context import apply_event_log_context
from .types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
    "apply_event_log_context",
]
