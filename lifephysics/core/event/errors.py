"""Listener error isolation for the EventBus."""

from __future__ import annotations

from logging import Logger

from lifephysics.core.event.types import EventListener
from lifephysics.core.exceptions import should_alert


def handle_listener_error(
    *,
    logger: Logger,
    event_name: str,
    listener: EventListener,
    exc: BaseException,
) -> None:
    """
    Log a listener failure. Never raises.

    Infrastructure errors below ERROR severity (a sync attempt without a
    configured store, for example) are logged as warnings without a traceback.
    """
    extra = {
        "event_name": event_name,
        "listener_id": listener.identifier,
        "priority": listener.priority.name,
        "error": str(exc),
        "error_type": type(exc).__name__,
    }
    if isinstance(exc, Exception) and not should_alert(exc):
        logger.warning("EventBus listener failed", extra=extra)
        return

    logger.error("EventBus listener error", extra=extra, exc_info=exc)
