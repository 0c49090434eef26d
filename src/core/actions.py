"""Interactive actions — what a button tap asks the bot to do.

A closed set of (kind, target, identifier) combinations, encoded as
"kind:target:identifier" in button payloads:

    complete:reminder:<reminder id>
    snooze:reminder:<reminder id>
    confirm:cancellation:all
    decline:cancellation:all

Anything else decodes to None.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

ALL = "all"


class ActionKind(Enum):
    COMPLETE = "complete"
    SNOOZE = "snooze"
    CONFIRM = "confirm"
    DECLINE = "decline"


class TargetType(Enum):
    REMINDER = "reminder"
    CANCELLATION = "cancellation"


_VALID_KINDS = {
    TargetType.REMINDER: {ActionKind.COMPLETE, ActionKind.SNOOZE},
    TargetType.CANCELLATION: {ActionKind.CONFIRM, ActionKind.DECLINE},
}


@dataclass(frozen=True)
class InteractiveAction:
    kind: ActionKind
    target: TargetType
    identifier: str

    def __post_init__(self) -> None:
        if self.kind not in _VALID_KINDS[self.target]:
            raise ValueError(f"{self.kind.value} is not valid for {self.target.value}")
        if not self.identifier:
            raise ValueError("identifier must not be empty")
        if self.target is TargetType.CANCELLATION and self.identifier != ALL:
            raise ValueError("cancellation actions only target 'all'")

    def encode(self) -> str:
        return f"{self.kind.value}:{self.target.value}:{self.identifier}"

    @classmethod
    def decode(cls, data: str) -> InteractiveAction | None:
        parts = data.split(":", 2)
        if len(parts) != 3:
            logger.warning("Malformed action payload: %r", data)
            return None
        try:
            return cls(ActionKind(parts[0]), TargetType(parts[1]), parts[2])
        except ValueError:
            logger.warning("Unknown action payload: %r", data)
            return None


def complete_reminder(reminder_id: str) -> InteractiveAction:
    return InteractiveAction(ActionKind.COMPLETE, TargetType.REMINDER, reminder_id)


def snooze_reminder(reminder_id: str) -> InteractiveAction:
    return InteractiveAction(ActionKind.SNOOZE, TargetType.REMINDER, reminder_id)


def confirm_cancel_all() -> InteractiveAction:
    return InteractiveAction(ActionKind.CONFIRM, TargetType.CANCELLATION, ALL)


def decline_cancel_all() -> InteractiveAction:
    return InteractiveAction(ActionKind.DECLINE, TargetType.CANCELLATION, ALL)
