"""
Reminder Pal — Reminder Store.

Reminders and user profiles live in memory as the
authoritative copy and persist to two JSON files, surviving bot restarts.

- reminders.json     list of Reminder records
- userProfiles.json  owner_id -> UserProfile

Saves are atomic per file (write a staging file, then replace), but the two
files are written independently: a crash between them can leave profile
counters out of step with the reminders. That drift is accepted.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from src.data.models import Reminder, ReminderDraft, UserProfile, new_reminder_id

logger = logging.getLogger(__name__)

REMINDERS_FILE = "reminders.json"
PROFILES_FILE = "userProfiles.json"

_REMINDER_LIST = TypeAdapter(list[Reminder])
_PROFILE_MAP = TypeAdapter(dict[str, UserProfile])


class ReminderStore:
    """In-memory repository of reminders and profiles with JSON backing."""

    def __init__(self, data_dir: str | None = None) -> None:
        if data_dir is None:
            from src.config import settings
            data_dir = settings.DATA_DIR

        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._reminders_path = self._data_dir / REMINDERS_FILE
        self._profiles_path = self._data_dir / PROFILES_FILE

        # Keyed by id; dict keeps insertion order
        self._reminders: dict[str, Reminder] = {}
        self._profiles: dict[str, UserProfile] = {}

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def load(self) -> None:
        """Load both files. Corrupt content is quarantined, never fatal."""
        reminders = self._load_file(self._reminders_path, _REMINDER_LIST, [])
        profiles = self._load_file(self._profiles_path, _PROFILE_MAP, {})

        self._reminders = {r.id: r for r in reminders}
        self._profiles = dict(profiles)
        logger.info(
            "Loaded %d reminders and %d user profiles from %s",
            len(self._reminders), len(self._profiles), self._data_dir,
        )

    def _load_file(self, path: Path, adapter: TypeAdapter, default):
        if not path.exists():
            return default

        try:
            raw = path.read_text(encoding="utf-8")
            if not raw.strip():
                return default
            return adapter.validate_python(json.loads(raw))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            logger.error("Failed to parse %s: %s", path, exc)
            self._quarantine(path)
            return default

    def _quarantine(self, path: Path) -> Path | None:
        """Copy a corrupt file aside with a timestamped name."""
        stamp = datetime.now().isoformat().replace(":", "-")
        backup = path.with_name(f"{path.name}.corrupted.{stamp}")
        try:
            shutil.copyfile(path, backup)
        except OSError as exc:
            logger.error("Failed to back up corrupted file %s: %s", path, exc)
            return None
        logger.warning("Backed up corrupted file to %s, starting fresh", backup)
        return backup

    def save(self) -> bool:
        """Write both collections. Returns False if either write failed."""
        reminders_ok = self._save_file(
            self._reminders_path,
            _REMINDER_LIST.dump_python(list(self._reminders.values()), mode="json"),
        )
        profiles_ok = self._save_file(
            self._profiles_path,
            _PROFILE_MAP.dump_python(self._profiles, mode="json"),
        )
        return reminders_ok and profiles_ok

    def _save_file(self, path: Path, data: object) -> bool:
        tmp_path = path.with_name(f"{path.name}.tmp")
        try:
            tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Error saving data to %s: %s", path, exc)
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError as cleanup_exc:
                logger.error("Error cleaning up temp file %s: %s", tmp_path, cleanup_exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Reminders: reads
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._reminders)

    def find_by_id(self, reminder_id: str) -> Reminder | None:
        """Return the live record (mutations on it are visible to the store)."""
        return self._reminders.get(reminder_id)

    def snapshot(self) -> list[Reminder]:
        """Detached copies of every reminder, safe to iterate while mutating."""
        return [r.model_copy(deep=True) for r in self._reminders.values()]

    def list_by_owner(self, owner_id: str) -> list[Reminder]:
        return [r for r in self._reminders.values() if r.owner_id == owner_id]

    def list_active_by_owner(self, owner_id: str) -> list[Reminder]:
        """Active reminders for one owner, soonest first."""
        active = [r for r in self.list_by_owner(owner_id) if r.active]
        active.sort(key=lambda r: r.trigger_time)
        return active

    def count_active(self, owner_id: str | None = None) -> int:
        return sum(
            1 for r in self._reminders.values()
            if r.active and (owner_id is None or r.owner_id == owner_id)
        )

    # ------------------------------------------------------------------
    # Reminders: writes
    # ------------------------------------------------------------------

    def create(self, owner_id: str, draft: ReminderDraft) -> Reminder:
        """Store a parsed draft for an owner and persist."""
        reminder = Reminder(
            id=new_reminder_id(draft.created_at),
            owner_id=owner_id,
            **draft.model_dump(),
        )
        self._reminders[reminder.id] = reminder

        profile = self._profiles.get(owner_id)
        if profile is not None:
            profile.total_reminders += 1
            profile.active_reminders += 1

        self.save()
        logger.info(
            "Reminder %s created for %s: %r at %s",
            reminder.id, owner_id, reminder.message, reminder.trigger_time.isoformat(),
        )
        return reminder

    def cancel_all_by_owner(self, owner_id: str) -> int:
        """Remove every active reminder of an owner. Returns how many."""
        doomed = [r.id for r in self.list_active_by_owner(owner_id)]
        if not doomed:
            return 0

        for reminder_id in doomed:
            del self._reminders[reminder_id]
        self.adjust_active(owner_id, -len(doomed))

        self.save()
        logger.info("Cancelled %d active reminders for %s", len(doomed), owner_id)
        return len(doomed)

    def cancel_by_id(self, reminder_id: str) -> Reminder | None:
        """Remove one reminder. Returns it, or None if it didn't exist."""
        reminder = self._reminders.pop(reminder_id, None)
        if reminder is None:
            return None

        if reminder.active:
            self.adjust_active(reminder.owner_id, -1)

        self.save()
        logger.info("Reminder %s cancelled", reminder_id)
        return reminder

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get_profile(self, owner_id: str) -> UserProfile | None:
        return self._profiles.get(owner_id)

    def ensure_profile(
        self, owner_id: str, now: datetime, display_name: str | None = None,
    ) -> tuple[UserProfile, bool]:
        """Return (profile, created). A new profile is persisted immediately."""
        profile = self._profiles.get(owner_id)
        if profile is not None:
            return profile, False

        profile = UserProfile(
            owner_id=owner_id,
            display_name=display_name or "Friend",
            joined_at=now,
        )
        self._profiles[owner_id] = profile
        self.save()
        logger.info("User profile created for %s", owner_id)
        return profile, True

    def adjust_active(self, owner_id: str, delta: int) -> None:
        """Shift the active counter, floored at zero. Does not save."""
        profile = self._profiles.get(owner_id)
        if profile is not None:
            profile.active_reminders = max(0, profile.active_reminders + delta)

    def increment_completed(self, owner_id: str) -> None:
        """Does not save."""
        profile = self._profiles.get(owner_id)
        if profile is not None:
            profile.completed_reminders += 1
