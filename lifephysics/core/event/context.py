"""Event metadata for LogContext."""

from __future__ import annotations

from typing import Any

from lifephysics.core.logging.logger import set_log_context


def apply_event_log_context(event_name: str, payload: dict[str, Any]) -> None:
    """
    Tag subsequent log records in this context with the event being published.

    Only payload keys are recorded; values may hold a full user snapshot.
    The payload's ``user_id`` is promoted to the ``user_id`` context field.
    """
    user_id = payload.get("user_id")
    set_log_context(
        user_id=str(user_id) if user_id is not None else None,
        event_name=event_name,
        event_keys=sorted(payload.keys()),
    )
