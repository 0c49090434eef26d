"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures like a temp reminder store.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("TIMEZONE", "UTC")

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

# Thursday
NOW = datetime(2026, 10, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed reference time — tests never read the wall clock."""
    return NOW


@pytest.fixture
def store(tmp_path):
    """Return a ReminderStore backed by a temp data dir."""
    from src.data.store import ReminderStore
    return ReminderStore(data_dir=str(tmp_path / "data"))


@pytest.fixture
def lifecycle(store):
    from src.core.lifecycle import ReminderLifecycle
    return ReminderLifecycle(store)


@pytest.fixture
def notifier():
    """Notifier that accepts every message."""
    mock = AsyncMock()
    mock.send_text.return_value = True
    mock.send_choice.return_value = True
    return mock


@pytest.fixture
def make_draft(now):
    """Build a ReminderDraft with sensible defaults."""
    from datetime import timedelta

    from src.data.models import ReminderDraft

    def _make(message="call mom", trigger=None, recurring=False, pattern=None, **kwargs):
        return ReminderDraft(
            message=message,
            original_text=f"remind me to {message}",
            trigger_time=trigger or now + timedelta(hours=1),
            recurring=recurring,
            pattern=pattern,
            created_at=now,
            **kwargs,
        )

    return _make
