"""
Reminder Pal — Data Models.

Reminders and user profiles persist as JSON across
restarts. Sessions are ephemeral and live only in process memory.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import AwareDatetime, BaseModel

UNTITLED_REMINDER = "Untitled Reminder"


def new_reminder_id(created_at: datetime) -> str:
    """Generation time in epoch milliseconds plus a random suffix."""
    return f"{int(created_at.timestamp() * 1000)}-{uuid.uuid4().hex[:8]}"


class ReminderDraft(BaseModel):
    """A parsed reminder before it is owned and stored.

    Produced by src.core.parser.parse_reminder, consumed by
    ReminderStore.create.
    """

    message: str
    original_text: str
    trigger_time: AwareDatetime
    recurring: bool = False
    pattern: str | None = None       # "daily" | "weekly_monday" | "monthly" | "monthly_15"
    active: bool = True
    completed: bool = False
    snoozed: bool = False
    created_at: AwareDatetime


class Reminder(BaseModel):
    """A scheduled task owned by one user.

    JSON example:
    {
        "id": "1760605200000-3fa2c1d9",
        "owner_id": "12345",
        "message": "call mom",
        "original_text": "remind me to call mom tomorrow at 6pm",
        "trigger_time": "2026-10-17T18:00:00+00:00",
        "recurring": false,
        "pattern": null,
        "active": true,
        "completed": false,
        "snoozed": false,
        "created_at": "2026-10-16T09:12:44.120000+00:00"
    }
    """

    id: str
    owner_id: str
    message: str
    original_text: str
    trigger_time: AwareDatetime
    recurring: bool = False
    pattern: str | None = None
    active: bool = True
    completed: bool = False
    snoozed: bool = False
    created_at: AwareDatetime


class UserProfile(BaseModel):
    """Per-owner counters. Created on first contact, never removed."""

    owner_id: str
    display_name: str = "Friend"
    joined_at: AwareDatetime
    total_reminders: int = 0
    active_reminders: int = 0
    completed_reminders: int = 0


class SessionState(Enum):
    IDLE = "idle"
    AWAITING_CANCEL_CONFIRMATION = "awaiting_cancel_confirmation"


@dataclass
class Session:
    """Ephemeral interaction state for one owner. Never persisted."""

    owner_id: str
    last_activity: datetime
    state: SessionState = SessionState.IDLE
