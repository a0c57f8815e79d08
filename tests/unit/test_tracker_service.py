"""
Unit tests for TrackerService.

Covers reward application through toggles, prerequisite flows, avatar
purchases, the write-through hook, and snapshots.
"""

import pytest

from lifephysics.domain.models.avatar import DEFAULT_AVATAR_ID
from lifephysics.domain.models.base import DomainValidationError
from lifephysics.domain.models.progression import ProgressionLedger
from lifephysics.domain.models.task import Difficulty, Prerequisite, Task, TaskStatus
from lifephysics.domain.rewards import RewardResult, RewardRoller
from lifephysics.services.tracker_service import (
    TrackerService,
    TrackerSnapshot,
    rank_title_for,
)

MISS = 0.99


@pytest.fixture
def changes():
    return []


@pytest.fixture
def hooked_tracker(tracker, changes):
    tracker.on_change = changes.append
    return tracker


def _add_task_with_prereqs(tracker, labels):
    task = tracker.add_task("Move house", difficulty=Difficulty.HARD)
    for label in labels:
        prereq = tracker.add_prerequisite(task.id)
        tracker.update_prerequisite_label(task.id, prereq.id, label)
    return task


@pytest.mark.unit
class TestToggleTask:
    def test_completion_awards_base(self, tracker):
        task = tracker.add_task("Stretch", difficulty=Difficulty.MEDIUM)

        result = tracker.toggle_task(task.id)

        assert result == RewardResult(experience_delta=250, currency_delta=250)
        assert (tracker.ledger.experience, tracker.ledger.coins) == (250, 250)
        assert tracker.get_task(task.id).status == TaskStatus.COMPLETED

    def test_complete_then_revert_nets_zero_without_luck(self, tracker):
        task = tracker.add_task("Stretch", difficulty=Difficulty.MEDIUM)

        tracker.toggle_task(task.id)
        tracker.toggle_task(task.id)

        assert (tracker.ledger.experience, tracker.ledger.coins) == (0, 0)
        assert tracker.get_task(task.id).completed_at is None

    def test_flat_penalty_revert_keeps_critical_bonus(self, scripted_rng, clock):
        tracker = TrackerService(
            "tester", roller=RewardRoller(rng=scripted_rng([0.0, MISS])), clock=clock
        )
        task = tracker.add_task("Stretch", difficulty=Difficulty.MEDIUM)

        tracker.toggle_task(task.id)  # critical: 625
        tracker.toggle_task(task.id)  # revert: -250

        assert tracker.ledger.experience == 375
        assert tracker.ledger.coins == 375

    def test_revert_cannot_drive_coins_negative(self, no_luck_rng, clock):
        task = Task("t1", "Lift", difficulty=Difficulty.HARD, status=TaskStatus.COMPLETED)
        tracker = TrackerService(
            "tester",
            tasks=[task],
            ledger=ProgressionLedger("tester", coins=10),
            roller=RewardRoller(rng=no_luck_rng),
            clock=clock,
        )

        result = tracker.toggle_task("t1")

        assert result.currency_delta == -500
        assert tracker.ledger.coins == 0
        assert tracker.ledger.experience == 0

    def test_unknown_task_is_noop(self, hooked_tracker, changes):
        assert hooked_tracker.toggle_task("missing") == RewardResult.none()
        assert changes == []

    def test_task_with_prerequisites_is_not_toggled(self, hooked_tracker, changes):
        task = _add_task_with_prereqs(hooked_tracker, ["A"])
        changes.clear()

        result = hooked_tracker.toggle_task(task.id)

        assert result.is_empty
        assert hooked_tracker.get_task(task.id).status == TaskStatus.PENDING
        assert changes == []

    def test_level_up_from_completions(self, tracker):
        for _ in range(2):
            tracker.toggle_task(tracker.add_task("Lift", difficulty=Difficulty.HARD).id)

        assert tracker.ledger.level == 2
        assert tracker.ledger.experience == 500


@pytest.mark.unit
class TestPrerequisiteFlow:
    def test_partial_completion_keeps_task_pending(self, tracker):
        task = _add_task_with_prereqs(tracker, ["A", "B"])
        first = tracker.get_task(task.id).prerequisites[0]

        result = tracker.toggle_prerequisite(task.id, first.id)

        assert result.experience_delta == 25
        assert tracker.get_task(task.id).status == TaskStatus.PENDING

    def test_completing_all_completes_task_without_task_reward(self, tracker):
        task = _add_task_with_prereqs(tracker, ["A", "B"])
        for prereq in tracker.get_task(task.id).prerequisites:
            tracker.toggle_prerequisite(task.id, prereq.id)

        assert tracker.get_task(task.id).status == TaskStatus.COMPLETED
        assert tracker.get_task(task.id).completed_at is not None
        assert tracker.ledger.experience == 50

    def test_untoggling_one_reverts_task(self, tracker):
        task = _add_task_with_prereqs(tracker, ["A", "B"])
        prereqs = tracker.get_task(task.id).prerequisites
        for prereq in prereqs:
            tracker.toggle_prerequisite(task.id, prereq.id)

        result = tracker.toggle_prerequisite(task.id, prereqs[1].id)

        assert result.experience_delta == -25
        assert tracker.get_task(task.id).status == TaskStatus.PENDING
        assert tracker.get_task(task.id).completed_at is None

    def test_empty_label_is_noop(self, hooked_tracker, changes):
        task = hooked_tracker.add_task("Plan")
        prereq = hooked_tracker.add_prerequisite(task.id)
        changes.clear()

        result = hooked_tracker.toggle_prerequisite(task.id, prereq.id)

        assert result == RewardResult.none()
        assert hooked_tracker.ledger.experience == 0
        assert changes == []

    def test_add_prerequisite_refused_while_last_unlabeled(self, tracker):
        task = tracker.add_task("Plan")
        tracker.add_prerequisite(task.id)

        assert tracker.add_prerequisite(task.id) is None

    def test_add_prerequisite_unknown_task(self, tracker):
        assert tracker.add_prerequisite("missing") is None

    def test_update_label_unknown_ids_are_silent(self, hooked_tracker, changes):
        hooked_tracker.update_prerequisite_label("missing", "x", "label")
        task = hooked_tracker.add_task("Plan")
        changes.clear()

        hooked_tracker.update_prerequisite_label(task.id, "missing", "label")

        assert changes == []


@pytest.mark.unit
class TestAvatars:
    def test_buy_and_select(self, tracker):
        tracker.ledger.coins = 600

        assert tracker.buy_avatar("shell-0", 500) is True
        assert tracker.select_avatar("shell-0") is True
        assert tracker.ledger.coins == 100
        assert tracker.wardrobe.selected_id == "shell-0"

    def test_buy_without_coins(self, hooked_tracker, changes):
        hooked_tracker.ledger.coins = 499

        assert hooked_tracker.buy_avatar("shell-0", 500) is False
        assert hooked_tracker.ledger.coins == 499
        assert changes == []

    def test_select_unowned(self, tracker):
        assert tracker.select_avatar("shell-5") is False
        assert tracker.wardrobe.selected_id == DEFAULT_AVATAR_ID


@pytest.mark.unit
class TestWriteThroughHook:
    def test_hook_receives_snapshot_and_events(self, hooked_tracker, changes):
        task = hooked_tracker.add_task("Stretch", difficulty=Difficulty.EASY)
        hooked_tracker.toggle_task(task.id)

        change = changes[-1]
        names = [event.event_name for event in change.events]

        assert change.operation == "toggle_task"
        assert change.snapshot.progression["experience"] == 100
        assert "task.status_changed" in names
        assert "ledger.experience_changed" in names

    def test_events_are_drained_once(self, hooked_tracker, changes):
        task = hooked_tracker.add_task("Stretch")
        hooked_tracker.toggle_task(task.id)
        hooked_tracker.add_task("Read")

        assert changes[-1].events == []
        assert hooked_tracker.ledger.get_pending_events() == []

    def test_payload_is_json_ready(self, hooked_tracker, changes):
        hooked_tracker.add_task("Stretch")

        payload = changes[-1].to_payload()

        assert payload["user_id"] == "tester"
        assert payload["operation"] == "add_task"
        assert isinstance(payload["snapshot"]["updated_at"], str)

    def test_failing_hook_keeps_state(self, tracker):
        def broken_hook(change):
            raise OSError("disk full")

        tracker.on_change = broken_hook
        task = tracker.add_task("Stretch")

        result = tracker.toggle_task(task.id)

        assert result.experience_delta == 250
        assert tracker.ledger.experience == 250


@pytest.mark.unit
class TestReadModel:
    def test_add_task_validates(self, tracker):
        with pytest.raises(DomainValidationError):
            tracker.add_task("")

    def test_progress_rounds_half_up(self, tracker):
        ids = [tracker.add_task(f"Task {i}").id for i in range(8)]
        tracker.toggle_task(ids[0])

        # 1/8 = 12.5%
        assert tracker.progress == 13

    def test_progress_empty(self, tracker):
        assert tracker.progress == 0

    def test_pending_and_completed(self, tracker):
        done = tracker.add_task("Done")
        tracker.add_task("Open")
        tracker.toggle_task(done.id)

        assert [t.title for t in tracker.completed_tasks()] == ["Done"]
        assert [t.title for t in tracker.pending_tasks()] == ["Open"]

    @pytest.mark.parametrize(
        "level, title",
        [(1, "Fragment Seeker"), (4, "Fragment Seeker"), (5, "Momentum Builder"), (9, "Momentum Builder"), (10, "Pattern Mapper")],
    )
    def test_rank_titles(self, level, title):
        assert rank_title_for(level) == title

    def test_experience_to_next_level(self, tracker):
        assert tracker.experience_to_next_level == 500

    def test_new_seeds_onboarding_task(self):
        tracker = TrackerService.new("guest")

        assert [t.id for t in tracker.tasks] == ["2"]


@pytest.mark.unit
class TestSnapshots:
    def test_round_trip_through_dict(self, tracker):
        tracker.ledger.coins = 1000
        tracker.buy_avatar("shell-0", 500)
        tracker.select_avatar("shell-0")
        task = tracker.add_task("Stretch", category="Energy")
        tracker.toggle_task(task.id)

        data = tracker.snapshot().to_dict()
        restored = TrackerService.from_snapshot(TrackerSnapshot.from_dict(data))

        assert restored.ledger.to_dict() == tracker.ledger.to_dict()
        assert restored.wardrobe.selected_id == "shell-0"
        assert restored.get_task(task.id).status == TaskStatus.COMPLETED

    def test_from_dict_requires_user_id(self):
        with pytest.raises(DomainValidationError):
            TrackerSnapshot.from_dict({"tasks": []})

    def test_malformed_ledger_rejected(self):
        snapshot = TrackerSnapshot(
            user_id="u1", tasks=[], progression={"coins": -1}, wardrobe={}
        )

        with pytest.raises(DomainValidationError):
            TrackerService.from_snapshot(snapshot)

    def test_restored_prerequisites(self):
        task = Task("t1", "Plan", prerequisites=[Prerequisite("a", "A")])
        snapshot = TrackerSnapshot(
            user_id="u1",
            tasks=[task.to_dict()],
            progression={"level": 2, "experience": 10, "coins": 5},
            wardrobe={},
        )

        tracker = TrackerService.from_snapshot(snapshot)

        assert tracker.get_task("t1").prerequisites[0].label == "A"
        assert tracker.ledger.level == 2
