"""Ephemeral per-owner sessions.

Sessions hold multi-step interaction state (e.g. waiting for a cancel
confirmation). They are never persisted — a restart clears them — and an
independent periodic sweep drops the ones that went idle.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from src.data.models import Session, SessionState

logger = logging.getLogger(__name__)


class SessionRegistry:
    """In-memory map of owner_id -> Session."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def touch(self, owner_id: str, now: datetime) -> Session:
        """Create the owner's session or refresh its last activity."""
        session = self._sessions.get(owner_id)
        if session is None:
            session = Session(owner_id=owner_id, last_activity=now)
            self._sessions[owner_id] = session
        else:
            session.last_activity = now
        return session

    def get(self, owner_id: str) -> Session | None:
        return self._sessions.get(owner_id)

    def set_state(self, owner_id: str, state: SessionState, now: datetime) -> Session:
        session = self.touch(owner_id, now)
        session.state = state
        return session

    def sweep(self, now: datetime, ttl: timedelta) -> int:
        """Drop sessions idle for longer than ttl. Returns how many."""
        cutoff = now - ttl
        stale = [oid for oid, s in self._sessions.items() if s.last_activity < cutoff]
        for owner_id in stale:
            del self._sessions[owner_id]
        if stale:
            logger.info(
                "Cleaned up %d stale user sessions. Active sessions: %d",
                len(stale), len(self._sessions),
            )
        return len(stale)
