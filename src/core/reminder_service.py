"""
Reminder Pal — UI-Agnostic Reminder Service.

Service layer behind every chat command: create, list, cancel, stats, help,
button actions and the conversational fallback. Returns structured response
objects; each UI adapter (Telegram today) renders them in its own way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from src.config import settings
from src.core import assistant
from src.core.actions import (
    ActionKind,
    InteractiveAction,
    TargetType,
    confirm_cancel_all,
    decline_cancel_all,
)
from src.core.lifecycle import InvalidTransitionError, ReminderNotFoundError
from src.core.parser import parse_reminder
from src.core.scheduler import format_when
from src.data.models import SessionState
from src.ports.notification_port import ChoiceOption

if TYPE_CHECKING:
    from src.core.lifecycle import ReminderLifecycle
    from src.core.sessions import SessionRegistry
    from src.data.models import Reminder
    from src.data.store import ReminderStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response types
# ---------------------------------------------------------------------------


class ResponseKind(Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    CHOICE_PROMPT = "choice_prompt"


@dataclass
class ServiceResponse:
    kind: ResponseKind
    message: str


@dataclass
class ReminderCreatedResponse(ServiceResponse):
    reminder: Reminder | None = None


@dataclass
class ChoicePromptResponse(ServiceResponse):
    options: list[ChoiceOption] = field(default_factory=list)


_NOT_FOUND = "Hmm, I couldn't find that reminder. It might have been processed or removed."

_PARSE_HELP = (
    "❌ Oops! I couldn't understand that reminder. Can you try phrasing it clearly?\n\n"
    "Examples:\n"
    "• \"/remind drink water in 30 minutes\"\n"
    "• \"remind me to call mom tomorrow at 6 PM\"\n"
    "• \"/remind project update every friday at 10am\"\n\n"
    "Or type /help for more examples."
)


def describe_pattern(pattern: str | None) -> str:
    """"weekly_friday" -> "weekly friday", "monthly_15" -> "monthly on the 15th"."""
    if not pattern:
        return ""
    if pattern.startswith("monthly_"):
        day = int(pattern.split("_", 1)[1])
        suffix = "th" if 11 <= day % 100 <= 13 else {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
        return f"monthly on the {day}{suffix}"
    return pattern.replace("_", " ")


# ---------------------------------------------------------------------------
# ReminderService
# ---------------------------------------------------------------------------


class ReminderService:
    """Orchestrates parser, store, lifecycle and sessions for one owner at a time.

    Returns structured response objects — never sends messages directly.
    """

    def __init__(
        self,
        store: ReminderStore,
        lifecycle: ReminderLifecycle,
        sessions: SessionRegistry,
        snooze_minutes: int | None = None,
    ) -> None:
        self._store = store
        self._lifecycle = lifecycle
        self._sessions = sessions
        self._snooze_minutes = (
            snooze_minutes if snooze_minutes is not None else settings.DEFAULT_SNOOZE_MINUTES
        )

    # ------------------------------------------------------------------
    # First contact
    # ------------------------------------------------------------------

    def greet(
        self, owner_id: str, now: datetime, display_name: str | None = None,
    ) -> ServiceResponse | None:
        """Refresh the session; on first contact create the profile and welcome.

        Returns None for owners the bot already knows.
        """
        self._sessions.touch(owner_id, now)
        _, created = self._store.ensure_profile(owner_id, now, display_name)
        if not created:
            return None

        return ServiceResponse(
            kind=ResponseKind.INFO,
            message=(
                f"🎉 Welcome to {settings.SITE_NAME}!\n\n"
                "I'm your personal reminder assistant. I can help you with:\n"
                "📝 Smart reminders (e.g., \"remind me to call mom tomorrow at 6 PM\")\n"
                "🤖 Answering your questions\n\n"
                "Key commands:\n"
                "• /remind [task] [time]\n"
                "• /list - view active reminders\n"
                "• /cancel - manage cancellations\n"
                "• /stats - your reminder stats\n"
                "• /help - for more info\n\n"
                "How can I assist you first? 😊"
            ),
        )

    # ------------------------------------------------------------------
    # Create / list
    # ------------------------------------------------------------------

    def create_from_text(self, owner_id: str, text: str, now: datetime) -> ServiceResponse:
        draft = parse_reminder(text, now)
        if draft is None:
            return ServiceResponse(kind=ResponseKind.ERROR, message=_PARSE_HELP)

        reminder = self._store.create(owner_id, draft)

        repeats = f" (Repeats {describe_pattern(reminder.pattern)})" if reminder.recurring else ""
        emoji = "🔄" if reminder.recurring else "⏰"
        return ReminderCreatedResponse(
            kind=ResponseKind.SUCCESS,
            message=(
                "✅ Reminder set!\n\n"
                f"📝 Task: {reminder.message}\n"
                f"{emoji} Time: {format_when(reminder.trigger_time)}{repeats}\n\n"
                "I'll notify you! 🔔"
            ),
            reminder=reminder,
        )

    def list_reminders(self, owner_id: str) -> ServiceResponse:
        active = self._store.list_active_by_owner(owner_id)
        if not active:
            return ServiceResponse(
                kind=ResponseKind.INFO,
                message="📋 You have no active reminders. Create one with /remind [task] [time].",
            )

        lines = [f"📋 Your Active Reminders ({len(active)}):", ""]
        for index, reminder in enumerate(active, start=1):
            icon = "🔄" if reminder.recurring else "⏰"
            snoozed = " 😴" if reminder.snoozed else ""
            lines.append(f"{index}. {reminder.message}")
            lines.append(f"   {icon} {format_when(reminder.trigger_time)}{snoozed}")
            lines.append("")
        return ServiceResponse(kind=ResponseKind.INFO, message="\n".join(lines).strip())

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def start_cancel_all(self, owner_id: str, now: datetime) -> ServiceResponse:
        """Ask for confirmation before cancelling every active reminder."""
        count = self._store.count_active(owner_id)
        if count == 0:
            return ServiceResponse(
                kind=ResponseKind.INFO,
                message="📋 You have no active reminders to cancel.",
            )

        self._sessions.set_state(owner_id, SessionState.AWAITING_CANCEL_CONFIRMATION, now)
        return ChoicePromptResponse(
            kind=ResponseKind.CHOICE_PROMPT,
            message=(
                f"⚠️ You have {count} active reminder(s). "
                "Are you sure you want to cancel ALL of them?"
            ),
            options=[
                ChoiceOption(confirm_cancel_all().encode(), "Yes, Cancel All"),
                ChoiceOption(decline_cancel_all().encode(), "No, Keep Them"),
            ],
        )

    def cancel_one(self, owner_id: str, position: int) -> ServiceResponse:
        """Cancel the N-th (1-based) reminder as shown by list_reminders."""
        active = self._store.list_active_by_owner(owner_id)
        if not 1 <= position <= len(active):
            return ServiceResponse(
                kind=ResponseKind.ERROR,
                message=f"There is no reminder #{position}. Use /list to see your reminders.",
            )

        target = active[position - 1]
        try:
            reminder = self._lifecycle.cancel_one(target.id)
        except ReminderNotFoundError:
            return ServiceResponse(kind=ResponseKind.ERROR, message=_NOT_FOUND)

        return ServiceResponse(
            kind=ResponseKind.SUCCESS,
            message=f"🗑️ Cancelled \"{reminder.message}\".",
        )

    # ------------------------------------------------------------------
    # Stats / help
    # ------------------------------------------------------------------

    def stats(self, owner_id: str) -> ServiceResponse:
        profile = self._store.get_profile(owner_id)
        if profile is None:
            return ServiceResponse(
                kind=ResponseKind.INFO,
                message="I don't have any stats for you yet. Try setting a reminder!",
            )

        active = self._store.count_active(owner_id)
        total = profile.total_reminders
        completed = profile.completed_reminders
        rate = round(completed / total * 100) if total > 0 else 0

        message = (
            "📊 Your Reminder Stats:\n\n"
            f"📅 Member since: {format_when(profile.joined_at)}\n"
            f"📝 Total created: {total}\n"
            f"⏰ Currently active: {active}\n"
            f"✅ Completed: {completed}\n"
        )
        if total > 0:
            message += f"📈 Completion rate: {rate}%\n"
        message += "\nKeep it up! 💪"
        return ServiceResponse(kind=ResponseKind.INFO, message=message)

    def help_text(self) -> ServiceResponse:
        return ServiceResponse(
            kind=ResponseKind.INFO,
            message=(
                f"🤖 {settings.SITE_NAME} Help Center\n\n"
                "I'm here to help you remember things and answer questions!\n\n"
                "📝 --- REMINDER COMMANDS --- 📝\n"
                "🔹 /remind [your task] [time/date]\n"
                "   Example: \"/remind buy groceries tomorrow at 5pm\"\n"
                "   Example: \"remind me to workout in 1 hour\"\n"
                "   Example: \"/remind team meeting every Monday at 10am\"\n"
                "🔹 /list - Shows your currently active reminders.\n"
                "🔹 /cancel - Cancels all active reminders (asks first).\n"
                "🔹 /cancel [n] - Cancels reminder number n from /list.\n"
                "🔹 /stats - Shows your reminder usage statistics.\n\n"
                "⌚ --- TIME PHRASES --- ⌚\n"
                "You can use natural language for times:\n"
                "• \"in 30 minutes\", \"in 2 hours\", \"in 3 days\"\n"
                "• \"today at 2 PM\", \"tonight at 8\", \"tomorrow at 9:30\"\n"
                "• \"every day at 9am\", \"every Tuesday\", \"every month on the 15th\"\n"
                "• \"on July 26th\", \"December 25 at 8:30am\"\n\n"
                "🤖 --- AI ASSISTANT --- 🤖\n"
                "Simply chat with me! If it's not a command, I'll try my best "
                "to answer your question.\n\n"
                "💡 Tip: Be as specific as possible with your reminder times for best results!"
            ),
        )

    # ------------------------------------------------------------------
    # Button actions
    # ------------------------------------------------------------------

    def handle_action(
        self, owner_id: str, action: InteractiveAction, now: datetime,
    ) -> ServiceResponse:
        """Dispatch one decoded button tap."""
        self._sessions.touch(owner_id, now)

        if action.target is TargetType.CANCELLATION:
            try:
                return self._handle_cancellation(owner_id, action.kind)
            finally:
                self._sessions.set_state(owner_id, SessionState.IDLE, now)

        reminder = self._store.find_by_id(action.identifier)
        if reminder is None or reminder.owner_id != owner_id:
            return ServiceResponse(kind=ResponseKind.ERROR, message=_NOT_FOUND)

        try:
            if action.kind is ActionKind.COMPLETE:
                return self._complete(action.identifier)
            if action.kind is ActionKind.SNOOZE:
                return self._snooze(action.identifier, now)
        except ReminderNotFoundError:
            return ServiceResponse(kind=ResponseKind.ERROR, message=_NOT_FOUND)

        raise ValueError(f"Unhandled action {action.encode()!r}")

    def _handle_cancellation(self, owner_id: str, kind: ActionKind) -> ServiceResponse:
        if kind is ActionKind.DECLINE:
            return ServiceResponse(
                kind=ResponseKind.INFO, message="👍 Okay, your reminders are safe.",
            )

        count = self._lifecycle.cancel_all(owner_id)
        if count == 0:
            return ServiceResponse(kind=ResponseKind.INFO, message="👍 No active reminders to cancel.")
        return ServiceResponse(
            kind=ResponseKind.SUCCESS,
            message=f"🗑️ All {count} active reminders have been cancelled.",
        )

    def _complete(self, reminder_id: str) -> ServiceResponse:
        reminder = self._lifecycle.complete(reminder_id)
        return ServiceResponse(
            kind=ResponseKind.SUCCESS,
            message=(
                f"✅ Great job! Marked \"{reminder.message}\" as completed.\n"
                "Keep up the good work! 🎉"
            ),
        )

    def _snooze(self, reminder_id: str, now: datetime) -> ServiceResponse:
        try:
            reminder = self._lifecycle.snooze(reminder_id, self._snooze_minutes, now)
        except InvalidTransitionError:
            return ServiceResponse(
                kind=ResponseKind.ERROR,
                message="That reminder is already completed, so there's nothing to snooze.",
            )
        return ServiceResponse(
            kind=ResponseKind.SUCCESS,
            message=(
                f"😴 Snoozed \"{reminder.message}\" for {self._snooze_minutes} minutes. "
                f"I'll remind you again around {format_when(reminder.trigger_time)}."
            ),
        )

    # ------------------------------------------------------------------
    # Conversational fallback
    # ------------------------------------------------------------------

    async def answer(self, owner_id: str, text: str, now: datetime) -> ServiceResponse:
        profile = self._store.get_profile(owner_id)
        context = {
            "profile": {
                "total_reminders": profile.total_reminders if profile else 0,
                "active_reminders": self._store.count_active(owner_id),
                "joined_at": profile.joined_at.isoformat() if profile else None,
            },
            "current_time": now.isoformat(),
        }
        reply = await assistant.answer(text, context, today=now.date())
        return ServiceResponse(kind=ResponseKind.INFO, message=reply)
