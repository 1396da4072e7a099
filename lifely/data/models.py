"""
Lifely — Data Models.

Every record the Entity Store persists, one pydantic model per collection.
Records are plain data: creation rules (goal >= 1, alarm day sets) are
enforced by the domain services, which raise ValidationError.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator


class ValidationError(ValueError):
    """Raised when domain input is rejected at creation or update time."""


def new_id() -> str:
    """Globally unique record identifier."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Naive datetimes read back from older records are taken as UTC.
Timestamp = Annotated[datetime, AfterValidator(_ensure_aware)]


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    """A single chat turn. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    role: Role
    content: str
    timestamp: Timestamp = Field(default_factory=utcnow)


class ChatSession(BaseModel):
    """An append-only conversation.

    updated_at never moves backwards: every append bumps it to the later of
    its current value and the message timestamp.
    """

    id: str = Field(default_factory=new_id)
    messages: list[ChatMessage] = Field(default_factory=list)
    created_at: Timestamp = Field(default_factory=utcnow)
    updated_at: Timestamp = Field(default_factory=utcnow)

    def append(self, message: ChatMessage) -> None:
        self.messages.append(message)
        self.touch(message.timestamp)

    def touch(self, moment: datetime) -> None:
        if moment > self.updated_at:
            self.updated_at = moment

    @property
    def title(self) -> str:
        """First user message, shortened, for session pickers."""
        for message in self.messages:
            if message.role == Role.USER:
                text = message.content.strip().splitlines()[0] if message.content.strip() else ""
                return text if len(text) <= 40 else text[:37] + "..."
        return "New chat"


# ---------------------------------------------------------------------------
# Journal
# ---------------------------------------------------------------------------


class JournalEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    content: str
    date: Timestamp = Field(default_factory=utcnow)
    tags: list[str] = Field(default_factory=list)  # set semantics, insertion order kept
    created_at: Timestamp = Field(default_factory=utcnow)
    updated_at: Timestamp = Field(default_factory=utcnow)

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, v: list[str]) -> list[str]:
        seen: list[str] = []
        for tag in v:
            tag = tag.strip()
            if tag and tag not in seen:
                seen.append(tag)
        return seen


# ---------------------------------------------------------------------------
# Habits
# ---------------------------------------------------------------------------


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class HabitLog(BaseModel):
    """One progress entry. Logs are appended, never edited."""

    date: Timestamp = Field(default_factory=utcnow)
    value: float = Field(allow_inf_nan=False)
    notes: str | None = None


class Habit(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: str | None = None
    goal: float = Field(default=1, allow_inf_nan=False)
    unit: str = "times"
    frequency: Frequency = Frequency.DAILY
    logs: list[HabitLog] = Field(default_factory=list)
    created_at: Timestamp = Field(default_factory=utcnow)
    updated_at: Timestamp = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Alarms
# ---------------------------------------------------------------------------


class Alarm(BaseModel):
    """An alarm. `days` uses 0 = Sunday ... 6 = Saturday and is only
    meaningful when is_recurring is set."""

    id: str = Field(default_factory=new_id)
    time: str                          # "HH:MM", 24h
    label: str
    days: list[int] = Field(default_factory=list)
    is_enabled: bool = True
    is_recurring: bool = False
    created_at: Timestamp = Field(default_factory=utcnow)
    updated_at: Timestamp = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class SettingRecord(BaseModel):
    """One persisted preference: the record key is the setting name."""

    id: str
    value: Any = None
