"""Reminder lifecycle — the state machine for one reminder.

States:
    Scheduled  active, due in the future
    Fired      one-shot only: active=False, waiting for Done / Snooze
    Completed  terminal (one-shot)
    Cancelled  terminal, record removed from the store

Recurring reminders cycle Scheduled → notified → Scheduled(next) until
cancelled.

Every transition re-reads the live record by id right before writing, so a
stale snapshot (e.g. one taken at the start of a scheduler tick) is never
mutated.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING

from src.core.recurrence import advance

if TYPE_CHECKING:
    from src.data.models import Reminder
    from src.data.store import ReminderStore

logger = logging.getLogger(__name__)


class ReminderNotFoundError(LookupError):
    """Raised when an id-keyed operation targets a reminder that is gone."""


class InvalidTransitionError(ValueError):
    """Raised when a transition is not allowed from the reminder's state."""


class FireOutcome(Enum):
    FIRED = "fired"                # one-shot, now waiting for acknowledgement
    RESCHEDULED = "rescheduled"    # recurring, moved to its next occurrence
    DEACTIVATED = "deactivated"    # recurring with a broken pattern
    SKIPPED = "skipped"            # gone or no longer active


class ReminderLifecycle:
    """Applies state transitions against the live store."""

    def __init__(self, store: ReminderStore) -> None:
        self._store = store

    def _live(self, reminder_id: str) -> Reminder:
        reminder = self._store.find_by_id(reminder_id)
        if reminder is None:
            raise ReminderNotFoundError(reminder_id)
        return reminder

    def fire(self, reminder_id: str, now: datetime) -> FireOutcome:
        """Apply the post-notification transition. Does not save.

        The scheduler persists once per tick instead of once per reminder.
        """
        reminder = self._store.find_by_id(reminder_id)
        if reminder is None or not reminder.active:
            logger.info("Reminder %s no longer active or found, skipping", reminder_id)
            return FireOutcome.SKIPPED
        if reminder.trigger_time > now:
            logger.info("Reminder %s was rescheduled meanwhile, skipping", reminder_id)
            return FireOutcome.SKIPPED

        if not reminder.recurring:
            reminder.active = False
            self._store.adjust_active(reminder.owner_id, -1)
            logger.info("One-shot reminder %s fired", reminder_id)
            return FireOutcome.FIRED

        next_trigger = advance(reminder.pattern, reminder.trigger_time, now)
        if next_trigger is None:
            reminder.active = False
            self._store.adjust_active(reminder.owner_id, -1)
            logger.error(
                "Deactivated recurring reminder %s (pattern=%r)", reminder_id, reminder.pattern,
            )
            return FireOutcome.DEACTIVATED

        reminder.trigger_time = next_trigger
        reminder.snoozed = False
        logger.info(
            "Recurring reminder %s rescheduled to %s", reminder_id, next_trigger.isoformat(),
        )
        return FireOutcome.RESCHEDULED

    def complete(self, reminder_id: str) -> Reminder:
        """Mark a reminder done and persist.

        One-shot: terminal (completed, inactive). Recurring: only the
        completion counter moves; the schedule keeps running.
        """
        reminder = self._live(reminder_id)

        if reminder.recurring:
            self._store.increment_completed(reminder.owner_id)
            self._store.save()
            logger.info("Recurring reminder %s occurrence marked done", reminder_id)
            return reminder

        if reminder.completed:
            return reminder

        if reminder.active:
            self._store.adjust_active(reminder.owner_id, -1)
        reminder.active = False
        reminder.completed = True
        self._store.increment_completed(reminder.owner_id)
        self._store.save()
        logger.info("Reminder %s completed", reminder_id)
        return reminder

    def snooze(self, reminder_id: str, minutes: int, now: datetime) -> Reminder:
        """Push the trigger to now + minutes and reactivate, then persist."""
        reminder = self._live(reminder_id)

        if reminder.completed and not reminder.recurring:
            raise InvalidTransitionError(f"Reminder {reminder_id} is already completed")

        if not reminder.active:
            self._store.adjust_active(reminder.owner_id, 1)
        reminder.trigger_time = now + timedelta(minutes=minutes)
        reminder.snoozed = True
        reminder.active = True
        self._store.save()
        logger.info(
            "Reminder %s snoozed for %d min until %s",
            reminder_id, minutes, reminder.trigger_time.isoformat(),
        )
        return reminder

    def cancel_one(self, reminder_id: str) -> Reminder:
        reminder = self._store.cancel_by_id(reminder_id)
        if reminder is None:
            raise ReminderNotFoundError(reminder_id)
        return reminder

    def cancel_all(self, owner_id: str) -> int:
        return self._store.cancel_all_by_owner(owner_id)
