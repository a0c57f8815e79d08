"""
Application Context (Kernel) - Life Physics Infrastructure Orchestration
========================================================================

Purpose
-------
Initialize and shut down the infrastructure in dependency order, and open
trackers wired to the right persistence path.

Responsibilities
----------------
- Load YAML balance and event settings (ConfigManager)
- Create the EventBus
- Initialize DatabaseService and SyncService when cloud sync is configured
- Open a ``TrackerService`` for a guest (local JSON write-through) or a
  signed-in user (``state.changed`` published on the event bus, persisted by
  ``SyncService`` on the LOW tier)
- Migrate a guest's local tasks on first sign-in

Non-Responsibilities
--------------------
- Business logic (TrackerService and the domain models)
- Sync semantics (SyncService)

Initialization Order
--------------------
    1. ConfigManager
    2. EventBus
    3. DatabaseService (optional)
    4. SyncService listeners (optional)

Shutdown Order (Reverse)
------------------------
    1. Pending publications and background listeners
    2. SyncService listeners
    3. DatabaseService
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Optional, Set

from lifephysics.core.config.config import Config
from lifephysics.core.config.manager import ConfigManager
from lifephysics.core.database.service import DatabaseService
from lifephysics.core.event.bus import EventBus
from lifephysics.core.exceptions import SyncError
from lifephysics.core.logging.logger import get_logger
from lifephysics.domain.rewards import RewardRoller, RewardTable
from lifephysics.services.local_store import LocalStateStore
from lifephysics.services.sync_service import STATE_CHANGED_EVENT, SyncService
from lifephysics.services.tracker_service import StateChange, TrackerService

logger = get_logger(__name__)

DEFAULT_GUEST_ID = "guest"


class ApplicationContext:
    """
    Kernel for infrastructure orchestration.

    Usage:
        context = ApplicationContext()
        await context.initialize()
        tracker = await context.open_guest()
        tracker.toggle_task("2")
        await context.shutdown()
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        database_url: Optional[str] = None,
        local_store: Optional[LocalStateStore] = None,
        create_schema: bool = True,
    ) -> None:
        self._config_dir = config_dir
        self._database_url = database_url
        self._create_schema = create_schema
        self.local_store = local_store or LocalStateStore()
        self.event_bus: Optional[EventBus] = None
        self.sync_service: Optional[SyncService] = None
        self._pending: Set[asyncio.Task] = set()
        self._initialized = False

        logger.debug("ApplicationContext created")

    # ========================================================================
    # INITIALIZATION
    # ========================================================================

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def sync_enabled(self) -> bool:
        return self.sync_service is not None

    async def initialize(self) -> None:
        """
        Initialize all infrastructure components in dependency order.

        Raises:
            RuntimeError: If already initialized or initialization fails
        """
        if self._initialized:
            raise RuntimeError("ApplicationContext already initialized")

        logger.info("Application context initialization started", extra=Config.get_config_summary())
        start_time = time.perf_counter()

        try:
            ConfigManager.initialize(self._config_dir)
            self.event_bus = EventBus()

            database_url = self._database_url or Config.DATABASE_URL
            if Config.SYNC_ENABLED and database_url:
                await DatabaseService.initialize(database_url)
                if self._create_schema:
                    await DatabaseService.create_schema()

                self.sync_service = SyncService(self.event_bus)
                self.sync_service.register_listeners()
                logger.info("Cloud sync enabled")
            else:
                logger.info("Cloud sync disabled; running device-only")

            self._initialized = True
            logger.info(
                "Application context initialized",
                extra={"duration_ms": (time.perf_counter() - start_time) * 1000.0},
            )

        except Exception as exc:
            logger.critical(
                "Application context initialization failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            await self._emergency_shutdown()
            raise RuntimeError("Failed to initialize application context") from exc

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("ApplicationContext not initialized")

    def _build_roller(self) -> RewardRoller:
        return RewardRoller(table=RewardTable.from_mapping(ConfigManager.get_section("rewards")))

    # ========================================================================
    # TRACKERS
    # ========================================================================

    async def open_guest(self, device_id: str = DEFAULT_GUEST_ID) -> TrackerService:
        """Tracker persisted to the device store after every change."""
        self._ensure_initialized()

        snapshot = self.local_store.load_or_seed(device_id)
        tracker = TrackerService.from_snapshot(
            snapshot,
            roller=self._build_roller(),
            on_change=self._save_locally,
        )
        logger.info("Guest tracker opened", extra={"user_id": device_id, "task_count": len(tracker.tasks)})
        return tracker

    async def open_user(
        self,
        google_id: str,
        email: str,
        name: Optional[str] = None,
        guest_id: Optional[str] = DEFAULT_GUEST_ID,
    ) -> TrackerService:
        """
        Tracker for a signed-in user, persisted through ``state.changed``.

        On first sign-in the guest's local tasks (if any) are uploaded and
        the local snapshot is cleared.

        Raises:
            SyncError: If cloud sync is not configured
        """
        self._ensure_initialized()
        if self.sync_service is None:
            raise SyncError(google_id, "cloud sync is not configured")

        created = await self.sync_service.ensure_user(google_id, email, name)
        if created and guest_id and self.local_store.exists(guest_id):
            guest_snapshot = self.local_store.load(guest_id)
            if guest_snapshot is not None:
                await self.sync_service.migrate_guest_state(google_id, guest_snapshot)
                self.local_store.clear(guest_id)

        snapshot = await self.sync_service.pull_state(google_id)
        if snapshot is None:
            tracker = TrackerService.new(google_id, roller=self._build_roller())
            await self.sync_service.push_state(tracker.snapshot())
            tracker.on_change = self._publish_change
        else:
            tracker = TrackerService.from_snapshot(
                snapshot,
                roller=self._build_roller(),
                on_change=self._publish_change,
            )

        logger.info(
            "User tracker opened",
            extra={"user_id": google_id, "task_count": len(tracker.tasks), "first_sign_in": created},
        )
        return tracker

    # ========================================================================
    # WRITE-THROUGH HOOKS
    # ========================================================================

    def _save_locally(self, change: StateChange) -> None:
        self.local_store.save(change.snapshot)

    def _publish_change(self, change: StateChange) -> None:
        if self.event_bus is None:
            raise RuntimeError("EventBus not initialized")

        # Raises RuntimeError outside a running loop; the tracker logs it.
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._publish(change))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish(self, change: StateChange) -> None:
        assert self.event_bus is not None
        await self.event_bus.publish(STATE_CHANGED_EVENT, change.to_payload())
        for event in change.events:
            await self.event_bus.publish(event.event_name, dict(event.payload))

    async def drain(self) -> None:
        """Wait until every scheduled publication and LOW listener has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        if self.event_bus is not None:
            await self.event_bus.drain()

    # ========================================================================
    # GRACEFUL SHUTDOWN
    # ========================================================================

    async def shutdown(self) -> None:
        """Flush pending sync work, then tear down in reverse order."""
        if not self._initialized:
            logger.warning("ApplicationContext not initialized, nothing to shut down")
            return

        logger.info("Application context shutdown started")
        await self.drain()

        if self.sync_service is not None:
            self.sync_service.unregister_listeners()
            self.sync_service = None

        try:
            await DatabaseService.shutdown()
        except Exception as exc:
            logger.error(
                "Error shutting down database",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

        if self.event_bus is not None:
            self.event_bus.clear()

        self._initialized = False
        logger.info("Application context shutdown complete")

    async def _emergency_shutdown(self) -> None:
        """Best-effort cleanup when initialization fails partway through."""
        logger.warning("Performing emergency shutdown")
        self.sync_service = None
        try:
            await DatabaseService.shutdown()
        except Exception as exc:
            logger.warning(
                "Database shutdown failed during emergency shutdown",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
