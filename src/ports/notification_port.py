"""Notification port — abstract interface for sending messages to users.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class ChoiceOption:
    """One tappable option; `id` is the payload sent back on tap."""

    id: str
    label: str


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def send_text(self, owner_id: str, text: str) -> bool: ...

    async def send_choice(
        self, owner_id: str, text: str, options: list[ChoiceOption],
    ) -> bool: ...


def format_choice_fallback(text: str, options: list[ChoiceOption]) -> str:
    """Render a choice prompt as plain text, keeping every option id."""
    lines = [text]
    for option in options:
        lines.append(f"- {option.label} (Option ID: {option.id})")
    lines.append("(Could not display buttons, please reply with text if needed or try the command again)")
    return "\n".join(lines)
