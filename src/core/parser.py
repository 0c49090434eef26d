"""
Reminder Pal — Time Expression Parser.

Converts free-form English reminder text
("remind me to call mom tomorrow at 6pm", "@remind standup every monday at
10am") into a ReminderDraft, without any network call.

Parsing is an ordered list of independent rules. Each rule is a regex plus a
pure handler that receives the partially-resolved ParseState and returns a
new one (or None for "no effect"). Rules run in three groups — recurrence,
date keywords, time — and a match in one group never prevents matches in a
later group, so phrases compose.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from typing import Callable

from src.core.recurrence import WEEKDAYS, add_months, advance
from src.data.models import UNTITLED_REMINDER, ReminderDraft

logger = logging.getLogger(__name__)

DEFAULT_MORNING = time(9, 0)
DEFAULT_EVENING = time(20, 0)

# One-shot reminders more than this far in the past are rejected
PAST_TOLERANCE = timedelta(seconds=60)

_PREFIX_RE = re.compile(
    r"^\s*(?:[@/]remind\b\s*|remind\s+me\b\s*(?:to\b\s*)?)", re.IGNORECASE,
)

_MONTHS_RE = (
    r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|jun(?:e)?|jul(?:y)?"
    r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
)
_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


# ---------------------------------------------------------------------------
# Parse state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParseState:
    """Working trigger time plus which date/time fields some rule has set."""

    trigger: datetime
    date_parts: frozenset[str] = field(default_factory=frozenset)  # year, month, day, weekday
    time_parts: frozenset[str] = field(default_factory=frozenset)  # hour, minute
    recurring: bool = False
    pattern: str | None = None

    @property
    def has_time(self) -> bool:
        return "hour" in self.time_parts

    @property
    def has_date(self) -> bool:
        return bool(self.date_parts)


RuleHandler = Callable[[re.Match, ParseState, datetime], "ParseState | None"]


@dataclass(frozen=True)
class RuleMatch:
    state: ParseState
    phrase: str


@dataclass(frozen=True)
class Rule:
    name: str
    group: str           # "recurrence" | "date" | "time"
    regex: re.Pattern
    handler: RuleHandler

    def apply(self, text: str, state: ParseState, now: datetime) -> RuleMatch | None:
        """Search text and run the handler; None when nothing matched or the handler declined."""
        match = self.regex.search(text)
        if match is None:
            return None
        new_state = self.handler(match, state, now)
        if new_state is None:
            logger.debug("Rule %s matched %r but had no effect", self.name, match.group(0))
            return None
        return RuleMatch(state=new_state, phrase=match.group(0))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _at(dt: datetime, hour: int, minute: int = 0) -> datetime:
    return dt.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _at_default(state: ParseState, default: time) -> datetime:
    """Keep an explicitly set time-of-day, otherwise apply the default."""
    if state.has_time:
        return state.trigger
    return _at(state.trigger, default.hour, default.minute)


def _on(dt: datetime, d: date) -> datetime:
    return dt.replace(year=d.year, month=d.month, day=d.day)


# ---------------------------------------------------------------------------
# Recurrence group
# ---------------------------------------------------------------------------


def _daily(match: re.Match, state: ParseState, now: datetime) -> ParseState:
    return replace(
        state,
        trigger=_at_default(state, DEFAULT_MORNING),
        recurring=True,
        pattern="daily",
    )


def _weekly(match: re.Match, state: ParseState, now: datetime) -> ParseState:
    day_name = match.group(2)
    target = WEEKDAYS.index(day_name.lower()) if day_name else state.trigger.weekday()

    trigger = _at_default(state, DEFAULT_MORNING)
    trigger += timedelta(days=(target - trigger.weekday()) % 7)

    return replace(
        state,
        trigger=trigger,
        recurring=True,
        pattern=f"weekly_{WEEKDAYS[target]}",
        date_parts=state.date_parts | {"weekday"},
    )


def _monthly(match: re.Match, state: ParseState, now: datetime) -> ParseState | None:
    day = int(match.group(1)) if match.group(1) else None
    if day is not None and not 1 <= day <= 31:
        return None

    trigger = _at_default(state, DEFAULT_MORNING)
    if day is not None:
        trigger = add_months(trigger, 0, day)

    return replace(
        state,
        trigger=trigger,
        recurring=True,
        pattern=f"monthly_{day}" if day is not None else "monthly",
        date_parts=state.date_parts | {"day"},
    )


# ---------------------------------------------------------------------------
# Date keyword group
# ---------------------------------------------------------------------------


def _tomorrow(match: re.Match, state: ParseState, now: datetime) -> ParseState:
    trigger = _on(state.trigger, now.date() + timedelta(days=1))
    trigger = _at_default(replace(state, trigger=trigger), DEFAULT_MORNING)
    return replace(state, trigger=trigger, date_parts=state.date_parts | {"day"})


def _tonight(match: re.Match, state: ParseState, now: datetime) -> ParseState:
    trigger = _on(state.trigger, now.date())
    trigger = _at_default(replace(state, trigger=trigger), DEFAULT_EVENING)
    if trigger <= now:
        trigger = _on(trigger, now.date() + timedelta(days=1))
    return replace(state, trigger=trigger, date_parts=state.date_parts | {"day"})


def _today(match: re.Match, state: ParseState, now: datetime) -> ParseState:
    trigger = _on(state.trigger, now.date())
    if not state.has_time:
        proposed = now + timedelta(hours=1)
        if proposed.date() != now.date():
            # Late evening: an hour from now is already tomorrow
            trigger = _at(proposed, proposed.hour, proposed.minute)
        elif proposed.hour < DEFAULT_MORNING.hour:
            trigger = _at(trigger, DEFAULT_MORNING.hour, DEFAULT_MORNING.minute)
        else:
            trigger = _at(trigger, proposed.hour, proposed.minute)
    return replace(state, trigger=trigger, date_parts=state.date_parts | {"day"})


def _calendar_date(
    state: ParseState, now: datetime, month_name: str, day: int, year_text: str | None,
) -> ParseState | None:
    month = _MONTHS[month_name[:3].lower()]
    year = int(year_text) if year_text else now.year

    try:
        trigger = state.trigger.replace(year=year, month=month, day=day)
    except ValueError:
        return None  # e.g. "feb 30"

    trigger = _at_default(replace(state, trigger=trigger), DEFAULT_MORNING)

    if not year_text and trigger < now:
        try:
            trigger = trigger.replace(year=year + 1)
        except ValueError:
            return None  # feb 29 rolling into a non-leap year

    return replace(
        state,
        trigger=trigger,
        date_parts=state.date_parts | {"year", "month", "day"},
    )


def _month_day(match: re.Match, state: ParseState, now: datetime) -> ParseState | None:
    """"July 4th", "on dec 25, 2027"."""
    return _calendar_date(state, now, match.group(1), int(match.group(2)), match.group(3))


def _day_month(match: re.Match, state: ParseState, now: datetime) -> ParseState | None:
    """"4th of July", "on 15 December, 2027"."""
    return _calendar_date(state, now, match.group(2), int(match.group(1)), match.group(3))


# ---------------------------------------------------------------------------
# Time group
# ---------------------------------------------------------------------------


def _relative(match: re.Match, state: ParseState, now: datetime) -> ParseState:
    value = int(match.group(1))
    unit = match.group(2).lower()

    if unit.startswith("min"):
        delta = timedelta(minutes=value)
    elif unit.startswith("h"):
        delta = timedelta(hours=value)
    elif unit == "day":
        delta = timedelta(days=value)
    else:
        delta = timedelta(weeks=value)

    return replace(
        state,
        trigger=state.trigger + delta,
        date_parts=state.date_parts | {"day"},
        time_parts=state.time_parts | {"hour", "minute"},
    )


def _clock_time(match: re.Match, state: ParseState, now: datetime) -> ParseState | None:
    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    meridiem = match.group(3).lower() if match.group(3) else None

    if meridiem == "pm" and 1 <= hour <= 11:
        hour += 12
    if meridiem == "am" and hour == 12:
        hour = 0
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None

    return replace(
        state,
        trigger=_at(state.trigger, hour, minute),
        time_parts=state.time_parts | {"hour", "minute"},
    )


# ---------------------------------------------------------------------------
# Rule table: order matters
# ---------------------------------------------------------------------------

_WEEKDAY_RE = "|".join(WEEKDAYS)

RULES: tuple[Rule, ...] = (
    Rule("daily", "recurrence",
         re.compile(r"\b(every\s+day|daily)\b", re.IGNORECASE), _daily),
    Rule("weekly", "recurrence",
         re.compile(rf"\b(every\s+({_WEEKDAY_RE})|weekly)\b", re.IGNORECASE), _weekly),
    Rule("monthly", "recurrence",
         re.compile(
             r"\b(?:every\s+month|monthly)(?:\s+on\s+the\s+(\d{1,2})(?:st|nd|rd|th)?)?\b",
             re.IGNORECASE,
         ), _monthly),
    Rule("tomorrow", "date", re.compile(r"\btomorrow\b", re.IGNORECASE), _tomorrow),
    Rule("tonight", "date", re.compile(r"\btonight\b", re.IGNORECASE), _tonight),
    Rule("today", "date", re.compile(r"\btoday\b", re.IGNORECASE), _today),
    Rule("month_day", "date",
         re.compile(
             rf"\b(?:on\s+)?({_MONTHS_RE})\s+(\d{{1,2}})(?:st|nd|rd|th)?(?:,\s*(\d{{4}}))?\b",
             re.IGNORECASE,
         ), _month_day),
    Rule("day_month", "date",
         re.compile(
             rf"\b(?:on\s+)?(\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?({_MONTHS_RE})(?:,\s*(\d{{4}}))?\b",
             re.IGNORECASE,
         ), _day_month),
    Rule("relative", "time",
         re.compile(r"\b(?:in|after)\s+(\d+)\s+(minute|min|hour|hr|day|week)s?\b", re.IGNORECASE),
         _relative),
    Rule("clock_time", "time",
         re.compile(r"(?:\bat|@)\s*(\d{1,2})(?:[:.](\d{2}))?\s*(am|pm)?\b", re.IGNORECASE),
         _clock_time),
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def strip_prefix(text: str) -> str:
    """Remove a leading "@remind" / "/remind" / "remind me [to]" prefix."""
    return _PREFIX_RE.sub("", text, count=1).strip()


def apply_rules(
    text: str, now: datetime, rules: tuple[Rule, ...] = RULES,
) -> tuple[ParseState, list[str]]:
    """Run every rule once, in order. Returns the final state and matched phrases."""
    state = ParseState(trigger=now)
    phrases: list[str] = []
    for rule in rules:
        result = rule.apply(text, state, now)
        if result is None:
            continue
        state = result.state
        phrases.append(result.phrase)
    return state, phrases


def extract_message(text: str, phrases: list[str]) -> str:
    """Strip matched phrases (longest first) and collapse whitespace."""
    for phrase in sorted(phrases, key=len, reverse=True):
        text = re.sub(re.escape(phrase), "", text, flags=re.IGNORECASE)
    text = re.sub(r"\s+", " ", text).strip()
    return text or UNTITLED_REMINDER


def parse_reminder(text: str, now: datetime) -> ReminderDraft | None:
    """Parse free-form reminder text relative to `now`.

    Returns a ReminderDraft, or None when the text carries no usable
    date/time/recurrence signal or resolves to the past. None is a normal
    outcome: callers show guidance, they don't crash.
    """
    body = strip_prefix(text)
    if not body:
        logger.info("Empty reminder after prefix: %r", text[:80])
        return None

    state, phrases = apply_rules(body, now)

    if not state.recurring and not state.has_date and not state.time_parts:
        logger.info("No time expression found in: %r", text[:80])
        return None

    trigger = state.trigger

    # Bare time-of-day already passed today → same time tomorrow
    if state.time_parts and not state.has_date and not state.recurring and trigger <= now:
        trigger += timedelta(days=1)

    # Recurring rollover runs only after the time rules have set the clock
    if state.recurring and trigger <= now:
        rolled = advance(state.pattern, trigger, now)
        if rolled is None:
            return None
        trigger = rolled

    if not state.recurring and trigger <= now - PAST_TOLERANCE:
        logger.warning(
            "Parsed one-shot reminder in the past (%s) from %r — rejecting",
            trigger.isoformat(), text[:80],
        )
        return None

    draft = ReminderDraft(
        message=extract_message(body, phrases),
        original_text=text,
        trigger_time=trigger,
        recurring=state.recurring,
        pattern=state.pattern,
        created_at=now,
    )
    logger.info(
        "Parsed reminder %r at %s (pattern=%s)",
        draft.message, draft.trigger_time.isoformat(), draft.pattern,
    )
    return draft
