"""
Reminder Pal — Tick Scheduler.

Runs once per fixed interval (driven by the bot's job queue). Each tick
scans a snapshot of the store, alerts the owner of every due reminder with
Done / Snooze buttons, and applies the lifecycle transition. Mutations are
batched: the store is saved once at the end of a tick that changed anything.

This module is provider-agnostic: it depends on the NotificationPort
protocol, not on a specific messenger. The clock is injectable so tests can
simulate time instead of waiting for it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable
from zoneinfo import ZoneInfo

from src.config import settings
from src.core.actions import complete_reminder, snooze_reminder
from src.core.lifecycle import FireOutcome
from src.ports.notification_port import ChoiceOption

if TYPE_CHECKING:
    from src.core.lifecycle import ReminderLifecycle
    from src.data.models import Reminder
    from src.data.store import ReminderStore
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Current time in the configured reference zone."""
    return datetime.now(ZoneInfo(settings.TIMEZONE))


def format_when(dt: datetime) -> str:
    """User-facing timestamp in the reference zone, e.g. "Oct 17, 2026 18:00"."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(ZoneInfo(settings.TIMEZONE))
    return dt.strftime("%b %d, %Y %H:%M")


@dataclass
class TickReport:
    """What one tick did."""

    fired: int = 0
    rescheduled: int = 0
    deactivated: int = 0
    skipped: int = 0
    delivery_failures: int = 0
    saved: bool = False

    @property
    def changed(self) -> bool:
        return (self.fired + self.rescheduled + self.deactivated) > 0


class Scheduler:
    """Periodic due-reminder scan."""

    def __init__(
        self,
        store: ReminderStore,
        lifecycle: ReminderLifecycle,
        notifier: NotificationPort,
        clock: Clock | None = None,
        notify_timeout: float | None = None,
        snooze_minutes: int | None = None,
    ) -> None:
        self._store = store
        self._lifecycle = lifecycle
        self._notifier = notifier
        self._clock = clock or system_clock
        self._notify_timeout = (
            notify_timeout if notify_timeout is not None else settings.NOTIFY_TIMEOUT_SECONDS
        )
        self._snooze_minutes = (
            snooze_minutes if snooze_minutes is not None else settings.DEFAULT_SNOOZE_MINUTES
        )

    async def tick(self, now: datetime | None = None) -> TickReport:
        """Fire every reminder due at `now` (default: the injected clock)."""
        if now is None:
            now = self._clock()
        report = TickReport()

        for entry in self._store.snapshot():
            if not entry.active or entry.trigger_time > now:
                continue

            # The snapshot may be stale: cancelled or acknowledged since
            live = self._store.find_by_id(entry.id)
            if live is None or not live.active:
                logger.info("Reminder %s no longer active or found, skipping", entry.id)
                report.skipped += 1
                continue

            logger.info(
                "Triggering reminder %s: %r for %s at %s",
                live.id, live.message, live.owner_id, now.isoformat(),
            )
            if not await self._deliver(live):
                report.delivery_failures += 1

            outcome = self._lifecycle.fire(entry.id, now)
            if outcome is FireOutcome.FIRED:
                report.fired += 1
            elif outcome is FireOutcome.RESCHEDULED:
                report.rescheduled += 1
            elif outcome is FireOutcome.DEACTIVATED:
                report.deactivated += 1
            else:
                report.skipped += 1

        if report.changed:
            report.saved = self._store.save()
            if not report.saved:
                logger.error("Tick changes could not be persisted; serving from memory")

        return report

    async def _deliver(self, reminder: Reminder) -> bool:
        """Send the alert. Failures stay isolated to this one reminder."""
        options = [
            ChoiceOption(complete_reminder(reminder.id).encode(), "✅ Yes, Done!"),
            ChoiceOption(snooze_reminder(reminder.id).encode(), f"😴 Snooze {self._snooze_minutes}min"),
        ]
        try:
            return await asyncio.wait_for(
                self._notifier.send_choice(reminder.owner_id, format_alert(reminder), options),
                timeout=self._notify_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Alert for reminder %s to %s timed out after %ss",
                reminder.id, reminder.owner_id, self._notify_timeout,
            )
        except Exception as exc:
            logger.error("Failed to alert %s for reminder %s: %s", reminder.owner_id, reminder.id, exc)
        return False


def format_alert(reminder: Reminder) -> str:
    """Format the message shown when a reminder fires."""
    return (
        "🔔 REMINDER ALERT! 🔔\n\n"
        f"📝 {reminder.message}\n\n"
        f"⏰ Was scheduled for: {format_when(reminder.trigger_time)}\n\n"
        "Did you complete this task?"
    )
