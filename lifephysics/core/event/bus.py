"""
Life Physics EventBus: async pub/sub with tiered concurrency.

Responsibilities
----------------
- Register/unregister listeners with priorities and wildcard patterns
- Publish events to all matching listeners
- Run listeners according to the tiered model (see ``scheduler``)
- Isolate listener errors
- Tag log records with the event being published

Events published by the application
-----------------------------------
- ``state.changed``: full tracker snapshot after every change (cloud sync
  listens on the LOW tier)
- ``ledger.*``, ``task.*``, ``avatar.*``: domain events drained from the
  aggregates after each tracker operation

Timeouts for the CRITICAL and HIGH tiers come from
``events.listener_timeout.*`` in the YAML config, with 5 second defaults.
"""

from __future__ import annotations

import inspect
from typing import Any, Optional

from lifephysics.core.config.manager import ConfigManager
from lifephysics.core.event.context import apply_event_log_context
from lifephysics.core.event.registry import ListenerRegistry
from lifephysics.core.event.scheduler import EventScheduler
from lifephysics.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from lifephysics.core.logging.logger import get_logger

logger = get_logger(__name__)


class EventBus:
    """
    Instance-based event bus (tests build their own).

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("state.changed", sync_service.on_state_changed, priority=ListenerPriority.LOW)
    >>> await bus.publish("state.changed", {"user_id": "u1", "snapshot": {...}})
    """

    def __init__(
        self,
        registry: Optional[ListenerRegistry] = None,
        scheduler: Optional[EventScheduler] = None,
        *,
        use_config: bool = True,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._registry = registry or ListenerRegistry()
        self._scheduler = scheduler or EventScheduler()
        self._use_config = use_config

        self._critical_timeout = self._load_timeout(
            "events.listener_timeout.critical_seconds", critical_timeout_seconds, 5.0
        )
        self._high_timeout = self._load_timeout(
            "events.listener_timeout.high_seconds", high_timeout_seconds, 5.0
        )

        logger.debug(
            "EventBus initialized",
            extra={
                "critical_timeout_seconds": self._critical_timeout,
                "high_timeout_seconds": self._high_timeout,
            },
        )

    def _load_timeout(self, key: str, override: Optional[float], default: float) -> float:
        """override -> config -> default."""
        if override is not None:
            return float(override)
        if not self._use_config:
            return default
        return float(ConfigManager.get(key, default))

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        """Listeners take exactly one argument, the payload."""
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            # Builtins may not expose a signature.
            return

        params = list(sig.parameters.values())
        if len(params) != 1:
            name = getattr(callback, "__qualname__", None) or repr(callback)
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{name}'"
            )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
        allow_duplicates: bool = False,
    ) -> str:
        """
        Subscribe ``callback`` to an event name or wildcard pattern.

        Returns the listener identifier for ``unsubscribe``.

        Raises
        ------
        ValueError
            If the callback does not take exactly one parameter.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )
        added = self._registry.add_listener(event_name, listener, allow_duplicates=allow_duplicates)

        if added:
            logger.debug(
                "EventBus: subscribed listener",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "once": listener.once,
                },
            )
        else:
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        removed = self._registry.remove_listener(event_name, identifier)
        if removed:
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )
        return removed

    def clear(self) -> None:
        total = self._registry.clear_all()
        logger.info("EventBus: cleared all listeners", extra={"previous_listener_count": total})

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to every matching listener.

        Returns results from CRITICAL/HIGH/NORMAL listeners; LOW listeners
        run in the background.
        """
        apply_event_log_context(event_name, data)

        listeners = self._registry.extract_listeners_for_event(event_name)
        if not listeners:
            logger.debug("EventBus: no listeners for event", extra={"event_name": event_name})
            return []

        logger.debug(
            "EventBus: publishing event",
            extra={"event_name": event_name, "listener_count": len(listeners)},
        )
        return await self._scheduler.execute(
            event_name=event_name,
            payload=data,
            listeners=listeners,
            logger=logger,
            critical_timeout=self._critical_timeout,
            high_timeout=self._high_timeout,
        )

    async def drain(self) -> None:
        """Wait for fire-and-forget listeners still running."""
        await self._scheduler.drain()

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name:
            return self._registry.get_listener_count_for_event(event_name)
        return self._registry.get_total_listener_count()

    def get_background_task_count(self) -> int:
        return self._scheduler.get_background_task_count()
