"""
EventScheduler: tiered execution of EventBus listeners.

Execution Model
---------------
- CRITICAL / HIGH: sequential, awaited, optional timeout
- NORMAL: concurrent via asyncio.gather, awaited
- LOW: background tasks, not awaited. Tasks are kept in a set until done so
  they are not garbage collected mid-flight; ``drain()`` awaits them.

Every listener runs inside its own try/except; a failure is logged through
``handle_listener_error`` and yields ``None``. Sync callbacks run in the
default executor.
"""

from __future__ import annotations

import asyncio
import inspect
from logging import Logger
from typing import Any, Optional

from lifephysics.core.event.errors import handle_listener_error
from lifephysics.core.event.types import EventListener, EventPayload, ListenerPriority


class EventScheduler:
    def __init__(self) -> None:
        self._background_tasks: set[asyncio.Task[Any]] = set()

    async def execute(
        self,
        *,
        event_name: str,
        payload: EventPayload,
        listeners: list[EventListener],
        logger: Logger,
        critical_timeout: Optional[float],
        high_timeout: Optional[float],
    ) -> list[Any]:
        """
        Run ``listeners`` (already sorted) tier by tier.

        Returns the results of CRITICAL, HIGH and NORMAL listeners; LOW
        listeners are not awaited and contribute nothing.
        """
        by_tier: dict[ListenerPriority, list[EventListener]] = {tier: [] for tier in ListenerPriority}
        for listener in listeners:
            by_tier[listener.priority].append(listener)

        results: list[Any] = []

        for tier, timeout in (
            (ListenerPriority.CRITICAL, critical_timeout),
            (ListenerPriority.HIGH, high_timeout),
        ):
            for listener in by_tier[tier]:
                results.append(
                    await self._run_with_timeout(
                        listener=listener,
                        event_name=event_name,
                        payload=payload,
                        logger=logger,
                        timeout=timeout,
                    )
                )

        if by_tier[ListenerPriority.NORMAL]:
            results.extend(
                await asyncio.gather(
                    *[
                        self._run_listener(
                            listener=lst, event_name=event_name, payload=payload, logger=logger
                        )
                        for lst in by_tier[ListenerPriority.NORMAL]
                    ]
                )
            )

        if by_tier[ListenerPriority.LOW]:
            loop = asyncio.get_running_loop()
            for listener in by_tier[ListenerPriority.LOW]:
                task = loop.create_task(
                    self._run_listener(
                        listener=listener, event_name=event_name, payload=payload, logger=logger
                    ),
                    name=f"eventbus-low-{event_name}-{listener.identifier}",
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def _run_with_timeout(
        self,
        *,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        logger: Logger,
        timeout: Optional[float],
    ) -> Any:
        run = self._run_listener(
            listener=listener, event_name=event_name, payload=payload, logger=logger
        )
        if timeout is None or timeout <= 0:
            return await run

        try:
            return await asyncio.wait_for(run, timeout=timeout)
        except asyncio.TimeoutError as exc:
            logger.error(
                "EventBus listener timeout",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "timeout_seconds": timeout,
                },
            )
            handle_listener_error(logger=logger, event_name=event_name, listener=listener, exc=exc)
            return None

    async def _run_listener(
        self,
        *,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        logger: Logger,
    ) -> Any:
        try:
            logger.debug(
                "EventBus: executing listener",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                },
            )
            if inspect.iscoroutinefunction(listener.callback):
                return await listener.callback(payload)

            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, listener.callback, payload)

        except Exception as exc:
            handle_listener_error(logger=logger, event_name=event_name, listener=listener, exc=exc)
            return None

    def get_background_task_count(self) -> int:
        return len(self._background_tasks)

    async def drain(self) -> None:
        """Wait for all in-flight LOW-tier tasks (used on shutdown and in tests)."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
