"""
Reminder Pal — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # LLM fallback answerer: provider-agnostic (gemini, anthropic, openai, cohere)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str = ""        # empty → canned replies only

    # Persistence: reminders.json + userProfiles.json live here
    DATA_DIR: str = "data"

    # Single reference clock for parsing and scheduling
    TIMEZONE: str = "UTC"

    # Security (empty → everyone may talk to the bot)
    ALLOWED_USER_IDS: list[int] = []

    # Scheduling
    DEFAULT_SNOOZE_MINUTES: int = 10
    TICK_INTERVAL_SECONDS: int = 60
    SESSION_TTL_MINUTES: int = 60
    SESSION_SWEEP_INTERVAL_MINUTES: int = 60

    # Timeouts for outbound calls
    NOTIFY_TIMEOUT_SECONDS: int = 15
    AI_TIMEOUT_SECONDS: int = 15
    AI_MAX_TOKENS: int = 120

    SITE_NAME: str = "Reminder Pal"

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator(
        "DEFAULT_SNOOZE_MINUTES",
        "TICK_INTERVAL_SECONDS",
        "SESSION_TTL_MINUTES",
        "SESSION_SWEEP_INTERVAL_MINUTES",
        "NOTIFY_TIMEOUT_SECONDS",
        "AI_TIMEOUT_SECONDS",
        "AI_MAX_TOKENS",
        mode="before",
    )
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=os.getenv("LLM_API_KEY", ""),
        DATA_DIR=os.getenv("DATA_DIR", "data"),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        DEFAULT_SNOOZE_MINUTES=os.getenv("DEFAULT_SNOOZE_MINUTES", "10"),
        TICK_INTERVAL_SECONDS=os.getenv("TICK_INTERVAL_SECONDS", "60"),
        SESSION_TTL_MINUTES=os.getenv("SESSION_TTL_MINUTES", "60"),
        SESSION_SWEEP_INTERVAL_MINUTES=os.getenv("SESSION_SWEEP_INTERVAL_MINUTES", "60"),
        NOTIFY_TIMEOUT_SECONDS=os.getenv("NOTIFY_TIMEOUT_SECONDS", "15"),
        AI_TIMEOUT_SECONDS=os.getenv("AI_TIMEOUT_SECONDS", "15"),
        AI_MAX_TOKENS=os.getenv("AI_MAX_TOKENS", "120"),
        SITE_NAME=os.getenv("SITE_NAME", "Reminder Pal"),
    )


# Singleton: imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
