"""Tests for src.core.lifecycle — reminder state transitions."""

from datetime import timedelta

import pytest

from src.core.lifecycle import (
    FireOutcome,
    InvalidTransitionError,
    ReminderNotFoundError,
)


@pytest.fixture
def owner(store, now):
    store.ensure_profile("12345", now)
    return "12345"


def _due(store, make_draft, now, owner, **kwargs):
    """Create a reminder whose trigger has just passed."""
    return store.create(owner, make_draft(trigger=now - timedelta(seconds=5), **kwargs))


# ---------------------------------------------------------------------------
# fire
# ---------------------------------------------------------------------------


class TestFire:
    def test_one_shot_deactivates(self, store, lifecycle, make_draft, now, owner):
        reminder = _due(store, make_draft, now, owner)

        assert lifecycle.fire(reminder.id, now) is FireOutcome.FIRED

        live = store.find_by_id(reminder.id)
        assert live.active is False
        assert live.completed is False
        assert store.get_profile(owner).active_reminders == 0

    def test_recurring_moves_to_next_occurrence(self, store, lifecycle, make_draft, now, owner):
        reminder = _due(store, make_draft, now, owner, recurring=True, pattern="daily")
        store.find_by_id(reminder.id).snoozed = True
        fired_at = reminder.trigger_time

        assert lifecycle.fire(reminder.id, now) is FireOutcome.RESCHEDULED

        live = store.find_by_id(reminder.id)
        assert live.active is True
        assert live.snoozed is False
        assert live.trigger_time == fired_at + timedelta(days=1)
        assert live.trigger_time > now
        assert store.get_profile(owner).active_reminders == 1

    def test_unknown_pattern_deactivates(self, store, lifecycle, make_draft, now, owner):
        reminder = _due(store, make_draft, now, owner, recurring=True, pattern="fortnightly")

        assert lifecycle.fire(reminder.id, now) is FireOutcome.DEACTIVATED
        assert store.find_by_id(reminder.id).active is False
        assert store.get_profile(owner).active_reminders == 0

    def test_missing_is_skipped(self, lifecycle, now):
        assert lifecycle.fire("nope", now) is FireOutcome.SKIPPED

    def test_inactive_is_skipped(self, store, lifecycle, make_draft, now, owner):
        reminder = _due(store, make_draft, now, owner)
        store.find_by_id(reminder.id).active = False
        assert lifecycle.fire(reminder.id, now) is FireOutcome.SKIPPED

    def test_rescheduled_meanwhile_is_skipped(self, store, lifecycle, make_draft, now, owner):
        reminder = _due(store, make_draft, now, owner)
        store.find_by_id(reminder.id).trigger_time = now + timedelta(minutes=10)

        assert lifecycle.fire(reminder.id, now) is FireOutcome.SKIPPED
        assert store.find_by_id(reminder.id).active is True

    def test_fire_does_not_save(self, store, lifecycle, make_draft, now, owner):
        reminder = _due(store, make_draft, now, owner)
        before = (store.data_dir / "reminders.json").read_text()

        lifecycle.fire(reminder.id, now)

        assert (store.data_dir / "reminders.json").read_text() == before


# ---------------------------------------------------------------------------
# complete
# ---------------------------------------------------------------------------


class TestComplete:
    def test_fired_one_shot_becomes_completed(self, store, lifecycle, make_draft, now, owner):
        reminder = _due(store, make_draft, now, owner)
        lifecycle.fire(reminder.id, now)

        done = lifecycle.complete(reminder.id)

        assert done.completed is True
        assert done.active is False
        profile = store.get_profile(owner)
        assert profile.completed_reminders == 1
        assert profile.active_reminders == 0

    def test_complete_before_firing_drops_active_count(self, store, lifecycle, make_draft, owner):
        reminder = store.create(owner, make_draft())

        lifecycle.complete(reminder.id)

        assert store.find_by_id(reminder.id).active is False
        assert store.get_profile(owner).active_reminders == 0

    def test_complete_twice_counts_once(self, store, lifecycle, make_draft, owner):
        reminder = store.create(owner, make_draft())
        lifecycle.complete(reminder.id)
        lifecycle.complete(reminder.id)
        assert store.get_profile(owner).completed_reminders == 1

    def test_recurring_keeps_schedule(self, store, lifecycle, make_draft, owner):
        reminder = store.create(owner, make_draft(recurring=True, pattern="daily"))
        scheduled_for = reminder.trigger_time

        done = lifecycle.complete(reminder.id)

        assert done.active is True
        assert done.completed is False
        assert done.trigger_time == scheduled_for
        assert store.get_profile(owner).completed_reminders == 1

    def test_complete_persists(self, store, lifecycle, make_draft, owner):
        reminder = store.create(owner, make_draft())
        lifecycle.complete(reminder.id)
        assert '"completed": true' in (store.data_dir / "reminders.json").read_text()

    def test_missing_raises(self, lifecycle):
        with pytest.raises(ReminderNotFoundError):
            lifecycle.complete("nope")


# ---------------------------------------------------------------------------
# snooze
# ---------------------------------------------------------------------------


class TestSnooze:
    def test_fired_one_shot_reactivates(self, store, lifecycle, make_draft, now, owner):
        reminder = _due(store, make_draft, now, owner)
        lifecycle.fire(reminder.id, now)

        snoozed = lifecycle.snooze(reminder.id, 10, now)

        assert snoozed.active is True
        assert snoozed.snoozed is True
        assert snoozed.trigger_time == now + timedelta(minutes=10)
        assert store.get_profile(owner).active_reminders == 1

    def test_active_reminder_count_unchanged(self, store, lifecycle, make_draft, now, owner):
        reminder = store.create(owner, make_draft())
        lifecycle.snooze(reminder.id, 5, now)
        assert store.get_profile(owner).active_reminders == 1

    def test_recurring_snooze_replaces_next_occurrence(self, store, lifecycle, make_draft, now, owner):
        reminder = store.create(owner, make_draft(recurring=True, pattern="daily"))
        snoozed = lifecycle.snooze(reminder.id, 10, now)
        assert snoozed.trigger_time == now + timedelta(minutes=10)
        assert snoozed.pattern == "daily"

    def test_completed_one_shot_cannot_snooze(self, store, lifecycle, make_draft, now, owner):
        reminder = store.create(owner, make_draft())
        lifecycle.complete(reminder.id)

        with pytest.raises(InvalidTransitionError):
            lifecycle.snooze(reminder.id, 10, now)
        assert store.find_by_id(reminder.id).active is False

    def test_missing_raises(self, lifecycle, now):
        with pytest.raises(ReminderNotFoundError):
            lifecycle.snooze("nope", 10, now)


# ---------------------------------------------------------------------------
# cancel
# ---------------------------------------------------------------------------


class TestCancel:
    def test_cancel_one(self, store, lifecycle, make_draft, owner):
        reminder = store.create(owner, make_draft())
        assert lifecycle.cancel_one(reminder.id).id == reminder.id
        assert store.find_by_id(reminder.id) is None

    def test_cancel_one_missing_raises(self, lifecycle):
        with pytest.raises(ReminderNotFoundError):
            lifecycle.cancel_one("nope")

    def test_cancel_all(self, store, lifecycle, make_draft, owner):
        store.create(owner, make_draft())
        store.create(owner, make_draft())
        assert lifecycle.cancel_all(owner) == 2
        assert store.count_active(owner) == 0
