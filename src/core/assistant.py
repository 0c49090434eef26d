"""
Reminder Pal — Conversational Fallback.

Answers messages that are not commands. Uses the configured LLM with a hard
timeout; when the LLM is unconfigured, slow or failing, replies come from a
small rule-based table so the user always gets an answer.

Never used by the parser or the scheduler.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import date

from src.config import settings
from src.core.llm import complete, is_configured
from src.core.scheduler import system_clock

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """\
You are a friendly and concise chat assistant for "{site_name}".
Keep responses brief (around 1-2 sentences, max ~250 characters).
Available commands: /remind, /list, /cancel, /stats, /help.
User context: {context}.
Current date: {today}
"""

_TEMPERATURE = 0.7

_EMPTY_REPLY = "I apologize, I had a little trouble thinking. Could you rephrase?"

_GREETINGS = ("hello", "hi", "hey", "good morning", "good evening")


def fallback_reply(message: str) -> str:
    """Rule-based reply used whenever the LLM can't answer."""
    lower = message.lower()
    if any(greeting in lower for greeting in _GREETINGS):
        return 'Hello! How can I assist you today? Try "/help" for commands.'
    if "thank" in lower:
        return "You're welcome! 😊"
    if "bye" in lower:
        return "Goodbye! 👋"
    return (
        "I can help set reminders or answer simple questions. "
        "Try 'remind me to call Mom tomorrow' or ask '/help'."
    )


async def answer(text: str, context: dict | None = None, today: date | None = None) -> str:
    """Answer a free-text message. Never raises.

    `today` defaults to the current date in the configured reference zone.
    """
    if not is_configured():
        logger.warning("LLM API key not configured. Using fallback response.")
        return fallback_reply(text)

    system = _SYSTEM_PROMPT.format(
        site_name=settings.SITE_NAME,
        context=json.dumps(context or {}, default=str),
        today=(today or system_clock().date()).isoformat(),
    )

    try:
        reply = await asyncio.wait_for(
            complete(
                system=system,
                user_message=text,
                max_tokens=settings.AI_MAX_TOKENS,
                temperature=_TEMPERATURE,
            ),
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.warning("LLM answer timed out after %ss", settings.AI_TIMEOUT_SECONDS)
        return fallback_reply(text)
    except Exception as exc:
        logger.error("LLM answer failed: %s", exc)
        return fallback_reply(text)

    reply = (reply or "").strip()
    return reply or _EMPTY_REPLY
