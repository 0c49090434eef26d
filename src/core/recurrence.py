"""Recurrence engine — pure calendar arithmetic.

Given a pattern tag, the current trigger time and the reference "now",
computes the next trigger strictly after now, or None when the reminder
must be deactivated (unknown pattern, runaway catch-up).

Pattern tags as persisted on a Reminder:
    "daily"
    "weekly_<weekday>"   e.g. "weekly_monday"
    "monthly"            same day-of-month as the current trigger
    "monthly_<day>"      e.g. "monthly_31", clamped to short months

No I/O: this module only transforms data.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

# Index matches datetime.weekday(): Monday == 0
WEEKDAYS = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)

# Shortest possible gap between two occurrences, used to bound catch-up
_MIN_CADENCE = {
    "daily": timedelta(days=1),
    "weekly": timedelta(days=7),
    "monthly": timedelta(days=28),
}

MAX_CATCH_UP_STEPS = 10_000


@dataclass(frozen=True)
class RecurrencePattern:
    """Structured form of a pattern tag."""

    kind: str                         # "daily" | "weekly" | "monthly"
    weekday: int | None = None        # weekly only, 0 = Monday
    day_of_month: int | None = None   # monthly only, 1-31

    @property
    def tag(self) -> str:
        if self.kind == "weekly" and self.weekday is not None:
            return f"weekly_{WEEKDAYS[self.weekday]}"
        if self.kind == "monthly" and self.day_of_month is not None:
            return f"monthly_{self.day_of_month}"
        return self.kind


def parse_pattern(tag: str | None) -> RecurrencePattern | None:
    """Parse a persisted pattern tag. Unknown or malformed tags give None."""
    if not tag:
        return None

    kind, _, arg = tag.partition("_")

    if kind == "daily" and not arg:
        return RecurrencePattern("daily")

    if kind == "weekly":
        if arg in WEEKDAYS:
            return RecurrencePattern("weekly", weekday=WEEKDAYS.index(arg))
        return None

    if kind == "monthly":
        if not arg:
            return RecurrencePattern("monthly")
        if arg.isdigit() and 1 <= int(arg) <= 31:
            return RecurrencePattern("monthly", day_of_month=int(arg))
        return None

    return None


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(dt: datetime, months: int, day: int | None = None) -> datetime:
    """Move dt by whole months, landing on `day` (default: dt.day).

    A day that does not exist in the target month is clamped to that
    month's last day; it never spills into the following month.
    """
    target_day = day if day is not None else dt.day
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    return dt.replace(
        year=year,
        month=month,
        day=min(target_day, days_in_month(year, month)),
    )


def step(pattern: RecurrencePattern, dt: datetime) -> datetime:
    """Apply exactly one cadence step."""
    if pattern.kind == "daily":
        return dt + timedelta(days=1)
    if pattern.kind == "weekly":
        return dt + timedelta(days=7)
    if pattern.kind == "monthly":
        return add_months(dt, 1, pattern.day_of_month)
    raise ValueError(f"Unknown recurrence kind: {pattern.kind!r}")


def advance(
    pattern: str | RecurrencePattern | None,
    current_trigger: datetime,
    now: datetime,
) -> datetime | None:
    """Return the next trigger strictly after `now`, or None to deactivate.

    Args:
        pattern: Pattern tag (or an already parsed RecurrencePattern).
        current_trigger: The trigger that just fired.
        now: Reference time; the result is always later than this.
    """
    parsed = pattern if isinstance(pattern, RecurrencePattern) else parse_pattern(pattern)
    if parsed is None:
        logger.error("Unknown recurrence pattern %r — cannot advance", pattern)
        return None

    next_trigger = step(parsed, current_trigger)
    if next_trigger > now:
        return next_trigger

    # Catch-up after downtime, bounded by how many cadences could have elapsed
    elapsed = now - next_trigger
    limit = min(int(elapsed / _MIN_CADENCE[parsed.kind]) + 2, MAX_CATCH_UP_STEPS)
    for _ in range(limit):
        next_trigger = step(parsed, next_trigger)
        if next_trigger > now:
            logger.info(
                "Caught up %s reminder from %s to %s",
                parsed.tag, current_trigger.isoformat(), next_trigger.isoformat(),
            )
            return next_trigger

    logger.error(
        "Catch-up for %s exceeded %d steps (from %s) — deactivating",
        parsed.tag, limit, current_trigger.isoformat(),
    )
    return None
