"""Telegram notification adapter — implements NotificationPort.

Wraps a telegram.Bot instance to satisfy the NotificationPort protocol.
Choice prompts become inline keyboards; when buttons can't be shown the
same option ids are sent as plain text.
"""

from __future__ import annotations

import logging

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.error import TelegramError

from src.ports.notification_port import ChoiceOption, format_choice_fallback

logger = logging.getLogger(__name__)

# Telegram rejects callback_data longer than 64 bytes
MAX_CALLBACK_DATA_BYTES = 64


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_text(self, owner_id: str, text: str) -> bool:
        try:
            await self._bot.send_message(chat_id=int(owner_id), text=text)
        except TelegramError as exc:
            logger.error("Error sending message to %s: %s", owner_id, exc)
            return False
        return True

    async def send_choice(
        self, owner_id: str, text: str, options: list[ChoiceOption],
    ) -> bool:
        if any(len(opt.id.encode("utf-8")) > MAX_CALLBACK_DATA_BYTES for opt in options):
            logger.error(
                "Button payload over %d bytes for %s — sending as text",
                MAX_CALLBACK_DATA_BYTES, owner_id,
            )
            return await self.send_text(owner_id, format_choice_fallback(text, options))

        keyboard = [
            [InlineKeyboardButton(opt.label, callback_data=opt.id)] for opt in options
        ]
        try:
            await self._bot.send_message(
                chat_id=int(owner_id),
                text=text,
                reply_markup=InlineKeyboardMarkup(keyboard),
            )
        except TelegramError as exc:
            logger.warning("Interactive message to %s failed (%s), falling back to text", owner_id, exc)
            return await self.send_text(owner_id, format_choice_fallback(text, options))
        return True
