"""
Meetup Calendar — Centralized configuration.

Loads all settings from .env. Every key has a default, so a bare checkout
runs against a local SQLite file under data/.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # SQLite
    DATABASE_PATH: str = "data/meetups.db"
    DB_TIMEOUT_SECONDS: float = 5.0

    # Logging
    LOG_LEVEL: str = "INFO"

    # Input limits
    PROPOSAL_MESSAGE_MAX_LENGTH: int = 200
    COMMENT_MAX_LENGTH: int = 240
    DISPLAY_NAME_MAX_LENGTH: int = 60

    # Feed
    FEED_LIMIT: int = 10

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return str(v).strip().upper() or "INFO"

    @field_validator(
        "PROPOSAL_MESSAGE_MAX_LENGTH", "COMMENT_MAX_LENGTH",
        "DISPLAY_NAME_MAX_LENGTH", "FEED_LIMIT",
        mode="before",
    )
    @classmethod
    def parse_positive_int(cls, v: str | int) -> int:
        value = int(v)
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value


def _load_settings() -> Settings:
    """Load settings from environment."""
    return Settings(
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/meetups.db"),
        DB_TIMEOUT_SECONDS=os.getenv("DB_TIMEOUT_SECONDS", "5.0"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        PROPOSAL_MESSAGE_MAX_LENGTH=os.getenv("PROPOSAL_MESSAGE_MAX_LENGTH", "200"),
        COMMENT_MAX_LENGTH=os.getenv("COMMENT_MAX_LENGTH", "240"),
        DISPLAY_NAME_MAX_LENGTH=os.getenv("DISPLAY_NAME_MAX_LENGTH", "60"),
        FEED_LIMIT=os.getenv("FEED_LIMIT", "10"),
    )


# Singleton, imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
