"""Tests for src.core.reminder_service — the UI-agnostic command layer."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from src.core.actions import (
    InteractiveAction,
    complete_reminder,
    confirm_cancel_all,
    decline_cancel_all,
    snooze_reminder,
)
from src.core.reminder_service import (
    ChoicePromptResponse,
    ReminderCreatedResponse,
    ReminderService,
    ResponseKind,
    describe_pattern,
)
from src.core.sessions import SessionRegistry
from src.data.models import SessionState

OWNER = "12345"


@pytest.fixture
def sessions():
    return SessionRegistry()


@pytest.fixture
def service(store, lifecycle, sessions):
    return ReminderService(store, lifecycle, sessions, snooze_minutes=10)


@pytest.fixture
def known_owner(service, now):
    service.greet(OWNER, now, "Dana")
    return OWNER


# ---------------------------------------------------------------------------
# greet
# ---------------------------------------------------------------------------


class TestGreet:
    def test_first_contact_welcomes_and_creates_profile(self, service, store, now):
        response = service.greet(OWNER, now, "Dana")

        assert response.kind is ResponseKind.INFO
        assert "Welcome to Reminder Pal" in response.message
        assert store.get_profile(OWNER).display_name == "Dana"

    def test_known_owner_gets_nothing(self, service, now):
        service.greet(OWNER, now)
        assert service.greet(OWNER, now + timedelta(minutes=1)) is None

    def test_refreshes_session(self, service, sessions, now):
        service.greet(OWNER, now)
        later = now + timedelta(minutes=3)
        service.greet(OWNER, later)
        assert sessions.get(OWNER).last_activity == later


# ---------------------------------------------------------------------------
# create / list
# ---------------------------------------------------------------------------


class TestCreate:
    def test_creates_and_confirms(self, service, store, known_owner, now):
        response = service.create_from_text(known_owner, "remind me to call mom tomorrow at 6pm", now)

        assert isinstance(response, ReminderCreatedResponse)
        assert response.kind is ResponseKind.SUCCESS
        assert "✅ Reminder set!" in response.message
        assert "📝 Task: call mom" in response.message
        assert "⏰ Time: Oct 16, 2026 18:00" in response.message
        assert store.find_by_id(response.reminder.id) is not None
        assert store.get_profile(known_owner).total_reminders == 1

    def test_recurring_confirmation(self, service, known_owner, now):
        response = service.create_from_text(known_owner, "@remind standup every monday at 10am", now)
        assert "🔄 Time: Oct 19, 2026 10:00 (Repeats weekly monday)" in response.message

    def test_unparseable_gives_guidance(self, service, store, known_owner, now):
        response = service.create_from_text(known_owner, "remind me to buy milk", now)

        assert response.kind is ResponseKind.ERROR
        assert "Examples:" in response.message
        assert len(store) == 0

    @pytest.mark.parametrize("pattern,expected", [
        ("daily", "daily"),
        ("weekly_friday", "weekly friday"),
        ("monthly", "monthly"),
        ("monthly_1", "monthly on the 1st"),
        ("monthly_22", "monthly on the 22nd"),
        ("monthly_13", "monthly on the 13th"),
        (None, ""),
    ])
    def test_describe_pattern(self, pattern, expected):
        assert describe_pattern(pattern) == expected


class TestList:
    def test_empty(self, service, known_owner):
        assert "no active reminders" in service.list_reminders(known_owner).message

    def test_numbered_soonest_first_with_markers(self, service, lifecycle, known_owner, now):
        service.create_from_text(known_owner, "remind me to stretch every day at 9am", now)
        created = service.create_from_text(known_owner, "remind me to call mom in 30 minutes", now)
        lifecycle.snooze(created.reminder.id, 10, now)

        message = service.list_reminders(known_owner).message
        lines = message.splitlines()

        assert lines[0] == "📋 Your Active Reminders (2):"
        assert lines[2] == "1. call mom"
        assert lines[3] == "   ⏰ Oct 15, 2026 12:10 😴"
        assert lines[5] == "2. stretch"
        assert lines[6] == "   🔄 Oct 16, 2026 09:00"


# ---------------------------------------------------------------------------
# cancellation
# ---------------------------------------------------------------------------


class TestCancel:
    def test_start_cancel_all_prompts_and_sets_session(self, service, sessions, known_owner, now):
        service.create_from_text(known_owner, "remind me to a in 1 hour", now)
        service.create_from_text(known_owner, "remind me to b in 2 hours", now)

        response = service.start_cancel_all(known_owner, now)

        assert isinstance(response, ChoicePromptResponse)
        assert "You have 2 active reminder(s)" in response.message
        assert [o.id for o in response.options] == [
            confirm_cancel_all().encode(), decline_cancel_all().encode(),
        ]
        assert sessions.get(known_owner).state is SessionState.AWAITING_CANCEL_CONFIRMATION

    def test_start_cancel_all_nothing_active(self, service, sessions, known_owner, now):
        response = service.start_cancel_all(known_owner, now)
        assert response.message == "📋 You have no active reminders to cancel."
        assert sessions.get(known_owner).state is SessionState.IDLE

    def test_confirm_cancels_and_resets_session(self, service, store, sessions, known_owner, now):
        service.create_from_text(known_owner, "remind me to a in 1 hour", now)
        service.create_from_text(known_owner, "remind me to b in 2 hours", now)
        service.start_cancel_all(known_owner, now)

        response = service.handle_action(known_owner, confirm_cancel_all(), now)

        assert response.message == "🗑️ All 2 active reminders have been cancelled."
        assert store.count_active(known_owner) == 0
        assert sessions.get(known_owner).state is SessionState.IDLE

    def test_decline_keeps_reminders(self, service, store, sessions, known_owner, now):
        service.create_from_text(known_owner, "remind me to a in 1 hour", now)
        service.start_cancel_all(known_owner, now)

        response = service.handle_action(known_owner, decline_cancel_all(), now)

        assert response.message == "👍 Okay, your reminders are safe."
        assert store.count_active(known_owner) == 1
        assert sessions.get(known_owner).state is SessionState.IDLE

    def test_confirm_with_nothing_left(self, service, known_owner, now):
        response = service.handle_action(known_owner, confirm_cancel_all(), now)
        assert response.message == "👍 No active reminders to cancel."

    def test_cancel_one_by_position(self, service, store, known_owner, now):
        service.create_from_text(known_owner, "remind me to later in 2 hours", now)
        service.create_from_text(known_owner, "remind me to sooner in 1 hour", now)

        response = service.cancel_one(known_owner, 1)

        assert response.kind is ResponseKind.SUCCESS
        assert "sooner" in response.message
        assert [r.message for r in store.list_active_by_owner(known_owner)] == ["later"]

    @pytest.mark.parametrize("position", [0, 2, -1])
    def test_cancel_one_out_of_range(self, service, known_owner, now, position):
        service.create_from_text(known_owner, "remind me to a in 1 hour", now)
        response = service.cancel_one(known_owner, position)
        assert response.kind is ResponseKind.ERROR
        assert "/list" in response.message


# ---------------------------------------------------------------------------
# reminder actions
# ---------------------------------------------------------------------------


class TestReminderActions:
    def test_complete(self, service, store, known_owner, now):
        created = service.create_from_text(known_owner, "remind me to call mom in 1 hour", now)

        response = service.handle_action(known_owner, complete_reminder(created.reminder.id), now)

        assert response.message.startswith('✅ Great job! Marked "call mom" as completed.')
        assert store.find_by_id(created.reminder.id).completed is True

    def test_snooze(self, service, store, known_owner, now):
        created = service.create_from_text(known_owner, "remind me to call mom in 1 hour", now)

        response = service.handle_action(known_owner, snooze_reminder(created.reminder.id), now)

        assert response.message == (
            '😴 Snoozed "call mom" for 10 minutes. '
            "I'll remind you again around Oct 15, 2026 12:10."
        )
        assert store.find_by_id(created.reminder.id).trigger_time == now + timedelta(minutes=10)

    def test_snooze_completed_is_refused(self, service, known_owner, now):
        created = service.create_from_text(known_owner, "remind me to call mom in 1 hour", now)
        service.handle_action(known_owner, complete_reminder(created.reminder.id), now)

        response = service.handle_action(known_owner, snooze_reminder(created.reminder.id), now)

        assert response.kind is ResponseKind.ERROR
        assert "already completed" in response.message

    def test_unknown_reminder(self, service, known_owner, now):
        response = service.handle_action(known_owner, complete_reminder("gone"), now)
        assert response.message.startswith("Hmm, I couldn't find that reminder.")

    def test_other_owners_reminder_is_not_found(self, service, store, known_owner, now):
        created = service.create_from_text("999", "remind me to secret in 1 hour", now)

        response = service.handle_action(known_owner, complete_reminder(created.reminder.id), now)

        assert response.kind is ResponseKind.ERROR
        assert store.find_by_id(created.reminder.id).completed is False

    def test_decoded_payload_round_trip(self, service, known_owner, now):
        created = service.create_from_text(known_owner, "remind me to call mom in 1 hour", now)
        action = InteractiveAction.decode(complete_reminder(created.reminder.id).encode())
        assert service.handle_action(known_owner, action, now).kind is ResponseKind.SUCCESS


# ---------------------------------------------------------------------------
# stats / help / answer
# ---------------------------------------------------------------------------


class TestStats:
    def test_no_profile(self, service):
        assert "don't have any stats" in service.stats("ghost").message

    def test_counts_and_rate(self, service, known_owner, now):
        first = service.create_from_text(known_owner, "remind me to a in 1 hour", now)
        service.create_from_text(known_owner, "remind me to b in 2 hours", now)
        service.create_from_text(known_owner, "remind me to c in 3 hours", now)
        service.create_from_text(known_owner, "remind me to d in 4 hours", now)
        service.handle_action(known_owner, complete_reminder(first.reminder.id), now)

        message = service.stats(known_owner).message

        assert "📅 Member since: Oct 15, 2026 12:00" in message
        assert "📝 Total created: 4" in message
        assert "⏰ Currently active: 3" in message
        assert "✅ Completed: 1" in message
        assert "📈 Completion rate: 25%" in message

    def test_no_rate_without_reminders(self, service, known_owner):
        assert "Completion rate" not in service.stats(known_owner).message


def test_help_mentions_commands(service):
    message = service.help_text().message
    for command in ("/remind", "/list", "/cancel", "/stats"):
        assert command in message


@pytest.mark.asyncio
async def test_answer_passes_profile_context(service, known_owner, now):
    service.create_from_text(known_owner, "remind me to a in 1 hour", now)

    with patch("src.core.reminder_service.assistant.answer", AsyncMock(return_value="Sure!")) as mock:
        response = await service.answer(known_owner, "what can you do?", now)

    assert response.message == "Sure!"
    text, context = mock.call_args.args
    assert text == "what can you do?"
    assert context["profile"]["total_reminders"] == 1
    assert context["profile"]["active_reminders"] == 1
    assert context["current_time"] == now.isoformat()
    assert mock.call_args.kwargs["today"] == now.date()
