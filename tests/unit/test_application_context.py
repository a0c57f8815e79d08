"""
Unit tests for ApplicationContext wiring: guest trackers persist locally,
signed-in trackers publish ``state.changed``.
"""

import pytest

from lifephysics.core.config import Config
from lifephysics.core.exceptions import SyncError
from lifephysics.core.infra import ApplicationContext
from lifephysics.services.local_store import LocalStateStore
from lifephysics.services.sync_service import STATE_CHANGED_EVENT, SyncService
from lifephysics.services.tracker_service import TrackerService


@pytest.fixture
def store(tmp_path):
    return LocalStateStore(data_dir=tmp_path, prefix="lp_")


@pytest.fixture
async def context(monkeypatch, store):
    monkeypatch.setattr(Config, "DATABASE_URL", "")
    ctx = ApplicationContext(config_dir=Config.PROJECT_ROOT / "config", local_store=store)
    await ctx.initialize()
    yield ctx
    await ctx.shutdown()


@pytest.mark.unit
class TestLifecycle:
    async def test_device_only_without_database(self, context):
        assert context.is_initialized
        assert context.sync_enabled is False
        assert context.event_bus is not None

    async def test_double_initialize(self, context):
        with pytest.raises(RuntimeError):
            await context.initialize()

    async def test_open_before_initialize(self, store):
        with pytest.raises(RuntimeError):
            await ApplicationContext(local_store=store).open_guest()


@pytest.mark.unit
class TestGuestTracker:
    async def test_seeded_and_saved_on_change(self, context, store):
        tracker = await context.open_guest("device-1")

        assert [t.id for t in tracker.tasks] == ["2"]
        assert store.exists("device-1") is False

        task = tracker.add_task("Stretch")
        tracker.toggle_task(task.id)

        saved = store.load("device-1")
        assert any(t["id"] == task.id and t["status"] == "completed" for t in saved.tasks)
        assert saved.progression["experience"] > 0

    async def test_reopen_restores_state(self, context):
        tracker = await context.open_guest("device-1")
        tracker.add_task("Stretch")

        reopened = await context.open_guest("device-1")

        assert [t.title for t in reopened.tasks] == ["Notice Your Life", "Stretch"]


@pytest.mark.unit
class TestSignedInTracker:
    async def test_requires_sync(self, context):
        with pytest.raises(SyncError):
            await context.open_user("g1", "ada@example.com")

    async def test_first_sign_in_migrates_guest_tasks(self, mocker, context, store):
        guest = await context.open_guest("guest")
        guest.add_task("Guest task")

        sync = mocker.MagicMock(spec=SyncService)
        sync.ensure_user.return_value = True
        sync.pull_state.return_value = None
        context.sync_service = sync

        tracker = await context.open_user("g1", "ada@example.com", "Ada")

        sync.migrate_guest_state.assert_awaited_once()
        assert sync.migrate_guest_state.await_args.args[0] == "g1"
        assert store.exists("guest") is False
        sync.push_state.assert_awaited_once()
        assert tracker.user_id == "g1"

    async def test_changes_are_published(self, mocker, context):
        sync = mocker.MagicMock(spec=SyncService)
        sync.ensure_user.return_value = False
        sync.pull_state.return_value = TrackerService.new("g1").snapshot()
        context.sync_service = sync

        received = []

        async def on_state_changed(payload):
            received.append(payload)

        context.event_bus.subscribe(STATE_CHANGED_EVENT, on_state_changed)

        tracker = await context.open_user("g1", "ada@example.com")
        tracker.add_task("Stretch")
        await context.drain()

        assert len(received) == 1
        assert received[0]["user_id"] == "g1"
        assert received[0]["operation"] == "add_task"
        sync.migrate_guest_state.assert_not_awaited()
