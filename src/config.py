"""
BowlBot — Centralized configuration.

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

    # Webhook — empty → long polling
    WEBHOOK_URL: str = ""
    LISTEN_HOST: str = "127.0.0.1"
    LISTEN_PORT: int = 8000

    # SQLite
    DATABASE_PATH: str = "data/bowlbot.db"

    # Timezone used to schedule games
    TIMEZONE: str = "UTC"

    # Setup dialog bookkeeping
    CONVERSATION_TTL_MINUTES: int = 10
    CONVERSATION_SWEEP_MINUTES: int = 5

    # Past games are purged after this many hours
    EVENT_RETENTION_HOURS: int = 24

    @field_validator(
        "LISTEN_PORT",
        "CONVERSATION_TTL_MINUTES",
        "CONVERSATION_SWEEP_MINUTES",
        "EVENT_RETENTION_HOURS",
        mode="before",
    )
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)

    @field_validator("WEBHOOK_URL", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return (v or "").rstrip("/")


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        WEBHOOK_URL=os.getenv("WEBHOOK_URL", ""),
        LISTEN_HOST=os.getenv("LISTEN_HOST", "127.0.0.1"),
        LISTEN_PORT=os.getenv("LISTEN_PORT", "8000"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/bowlbot.db"),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        CONVERSATION_TTL_MINUTES=os.getenv("CONVERSATION_TTL_MINUTES", "10"),
        CONVERSATION_SWEEP_MINUTES=os.getenv("CONVERSATION_SWEEP_MINUTES", "5"),
        EVENT_RETENTION_HOURS=os.getenv("EVENT_RETENTION_HOURS", "24"),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
