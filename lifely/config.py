"""
Lifely — Centralized configuration.

Loads process-level settings from .env and validates required keys.
Per-user preferences (voice, notifications, local LLM) live in the
settings collection instead, see lifely/core/settings_service.py.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from lifely/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_HOSTED_LLM_PROVIDERS = {"gemini", "anthropic", "openai", "cohere"}


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram front end
    TELEGRAM_BOT_TOKEN: str
    ALLOWED_USER_IDS: list[int] = []

    # Reasoning Service: "llm" (prompted function calling) | "http" (remote endpoint)
    REASONING_PROVIDER: str = "llm"
    REASONING_URL: str = ""
    REASONING_TIMEOUT_SECONDS: float = 30.0

    # LLM: provider-agnostic (gemini, anthropic, openai, cohere, ollama)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str = ""

    # Audio: OpenAI Whisper (transcription only)
    OPENAI_API_KEY: str = ""
    TRANSCRIPTION_LANGUAGE: str = ""

    # Entity Store
    DATABASE_PATH: str = "data/lifely.db"

    # Viewer's local time zone: habit day buckets and alarm times
    TIMEZONE: str = "UTC"
    ALARM_CHECK_INTERVAL_SECONDS: int = 60

    LOG_LEVEL: str = "INFO"

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("REASONING_PROVIDER", "LLM_PROVIDER", mode="before")
    @classmethod
    def lower_provider(cls, v: str) -> str:
        return v.strip().lower()


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")
    reasoning_provider = os.getenv("REASONING_PROVIDER", "llm").strip().lower()
    llm_provider = os.getenv("LLM_PROVIDER", "gemini").strip().lower()
    llm_api_key = os.getenv("LLM_API_KEY", "")
    reasoning_url = os.getenv("REASONING_URL", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    if reasoning_provider == "http" and not reasoning_url:
        print("ERROR: REASONING_URL is required when REASONING_PROVIDER=http", file=sys.stderr)
        sys.exit(1)

    needs_key = reasoning_provider == "llm" and llm_provider in _HOSTED_LLM_PROVIDERS
    if needs_key and (not llm_api_key or llm_api_key.startswith("your-")):
        print("ERROR: LLM_API_KEY is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        REASONING_PROVIDER=reasoning_provider,
        REASONING_URL=reasoning_url,
        REASONING_TIMEOUT_SECONDS=os.getenv("REASONING_TIMEOUT_SECONDS", "30"),
        LLM_PROVIDER=llm_provider,
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=llm_api_key,
        OPENAI_API_KEY=os.getenv("OPENAI_API_KEY", ""),
        TRANSCRIPTION_LANGUAGE=os.getenv("TRANSCRIPTION_LANGUAGE", ""),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/lifely.db"),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        ALARM_CHECK_INTERVAL_SECONDS=os.getenv("ALARM_CHECK_INTERVAL_SECONDS", "60"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


# Singleton, imported lazily by other modules as:
#   from lifely.config import settings
settings = _load_settings()
