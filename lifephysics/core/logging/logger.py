"""
Life Physics Logging Subsystem

Purpose
-------
One place that decides how the tracker, the event bus and cloud sync log:

- JSON lines in production and in the rotating file, readable text on a
  developer console.
- ``LogContext`` carries the user, task and operation through ContextVars,
  so a toggle can be followed from ``TrackerService`` into the LOW-priority
  sync listener by its correlation id.
- Records go through a QueueHandler; a QueueListener thread does the I/O,
  keeping the event loop free while sync writes are in flight.

Context Fields
--------------
user_id ("guest" for device-only trackers), task_id, component, operation,
correlation_id. Anything passed as ``extra={...}`` ends up under ``extra``
in the JSON payload.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from lifephysics.core.config.config import Config

_log_context: ContextVar[Dict[str, Any]] = ContextVar("lifephysics_log_context", default={})

_UNSET = "N/A"
_CONTEXT_FIELDS = ("user_id", "task_id", "correlation_id", "component", "operation")
# Every attribute a bare LogRecord carries, plus the ones formatters add.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Knobs read from ``Config`` at setup time."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(user_id)-12s | %(name)s | %(message)s"
    DATE_FORMAT: str = "%H:%M:%S"
    FILE_NAME: str = "lifephysics.json.log"
    FILE_BACKUPS: int = 3
    QUEUE_SIZE: int = 5_000

    @property
    def level(self) -> int:
        return getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO)

    @property
    def use_json(self) -> bool:
        flag = getattr(Config, "LOG_JSON", None)
        return Config.is_production() if flag is None else bool(flag)

    @property
    def logs_dir(self) -> Path:
        return Path(Config.LOGS_DIR)


LOGGER_CONFIG = LoggerConfig()

_listener: Optional[QueueListener] = None


class ContextFilter(logging.Filter):
    """
    Copy the active ``LogContext`` onto every record.

    Fields passed explicitly through ``extra=`` take precedence.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get()
        for field in _CONTEXT_FIELDS:
            if getattr(record, field, None) in (None, _UNSET):
                setattr(record, field, context.get(field) or _UNSET)
        if record.component == _UNSET:
            record.component = record.name.split(".", 1)[0]
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value not in (None, _UNSET):
                payload[field] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in _CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, ensure_ascii=False, default=str)


class _DroppingQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            sys.stderr.write("lifephysics: log queue full, record dropped\n")


def _handlers() -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    if LOGGER_CONFIG.use_json:
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(
            logging.Formatter(LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
        )
    handlers: List[logging.Handler] = [console]

    if not Config.is_testing():
        LOGGER_CONFIG.logs_dir.mkdir(parents=True, exist_ok=True)
        rotating = TimedRotatingFileHandler(
            LOGGER_CONFIG.logs_dir / LOGGER_CONFIG.FILE_NAME,
            when="midnight",
            backupCount=LOGGER_CONFIG.FILE_BACKUPS,
            encoding="utf-8",
            utc=True,
        )
        rotating.setFormatter(JSONFormatter())
        handlers.append(rotating)

    return handlers


def setup_logging() -> None:
    """Install the queue handler on the root logger. Safe to call twice."""
    global _listener

    if _listener is not None:
        return

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(LOGGER_CONFIG.QUEUE_SIZE)
    _listener = QueueListener(log_queue, *_handlers(), respect_handler_level=True)
    _listener.start()

    # The filter sits on the queue handler so the context is read on the
    # emitting task, not on the listener thread.
    queue_handler = _DroppingQueueHandler(log_queue)
    queue_handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(LOGGER_CONFIG.level)
    root.addHandler(queue_handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if Config.DATABASE_ECHO else logging.WARNING
    )

    logging.getLogger(__name__).debug(
        "Logging initialized",
        extra={"environment": Config.ENVIRONMENT, "json": LOGGER_CONFIG.use_json},
    )


def shutdown_logging() -> None:
    """Flush queued records and detach the handlers."""
    global _listener

    if _listener is None:
        return

    _listener.stop()
    _listener = None

    root = logging.getLogger()
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Scoped logging context, usable with ``with`` and ``async with``.

    >>> with LogContext(user_id="guest", operation="toggle_task", task_id="2"):
    ...     logger.info("Task toggled")
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        task_id: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.context: Dict[str, Any] = {
            "user_id": _UNSET if user_id is None else str(user_id),
            "task_id": _UNSET if task_id is None else str(task_id),
            "component": component,
            "operation": operation,
            "correlation_id": correlation_id or uuid.uuid4().hex[:8],
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    """Merge fields into the current context. None values are ignored."""
    current = dict(_log_context.get())
    for key, value in fields.items():
        if value is None:
            continue
        current[key] = str(value) if key in ("user_id", "task_id") else value
    _log_context.set(current)


def get_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())


def clear_log_context() -> None:
    _log_context.set({})


setup_logging()
