"""Tests for lifely.data.models — record models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from lifely.data.models import (
    ChatMessage,
    ChatSession,
    Frequency,
    Habit,
    HabitLog,
    JournalEntry,
    Role,
    new_id,
)


def test_new_id_is_unique():
    assert len({new_id() for _ in range(100)}) == 100


def test_chat_message_is_immutable():
    message = ChatMessage(role=Role.USER, content="hi")
    with pytest.raises(PydanticValidationError):
        message.content = "changed"


def test_naive_timestamps_are_read_as_utc():
    message = ChatMessage(role=Role.USER, content="hi", timestamp=datetime(2025, 1, 1, 12, 0))
    assert message.timestamp.tzinfo is timezone.utc


def test_role_serializes_as_plain_string():
    message = ChatMessage(role=Role.ASSISTANT, content="hello")
    assert message.model_dump(mode="json")["role"] == "assistant"


class TestChatSession:
    def test_append_bumps_updated_at(self):
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        session = ChatSession(created_at=start, updated_at=start)
        later = start + timedelta(minutes=5)
        session.append(ChatMessage(role=Role.USER, content="hi", timestamp=later))
        assert session.updated_at == later

    def test_updated_at_never_moves_backwards(self):
        start = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        session = ChatSession(created_at=start, updated_at=start)
        session.append(ChatMessage(role=Role.USER, content="hi", timestamp=start - timedelta(hours=1)))
        assert session.updated_at == start

    def test_title_uses_first_user_message(self):
        session = ChatSession()
        session.append(ChatMessage(role=Role.USER, content="Plan my week"))
        session.append(ChatMessage(role=Role.USER, content="Something else"))
        assert session.title == "Plan my week"

    def test_long_title_is_shortened(self):
        session = ChatSession()
        session.append(ChatMessage(role=Role.USER, content="x" * 100))
        assert len(session.title) == 40
        assert session.title.endswith("...")

    def test_empty_session_title(self):
        assert ChatSession().title == "New chat"


class TestJournalEntry:
    def test_tags_are_trimmed_and_unique(self):
        entry = JournalEntry(title="t", content="c", tags=[" work ", "work", "", "life"])
        assert entry.tags == ["work", "life"]


class TestHabit:
    def test_defaults(self):
        habit = Habit(name="Meditate")
        assert habit.goal == 1
        assert habit.unit == "times"
        assert habit.frequency is Frequency.DAILY
        assert habit.logs == []

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_log_value_rejected(self, value):
        with pytest.raises(PydanticValidationError):
            HabitLog(value=value)

    def test_non_finite_goal_rejected(self):
        with pytest.raises(PydanticValidationError):
            Habit(name="Read", goal=float("inf"))

    def test_json_round_trip_with_logs(self):
        habit = Habit(name="Water", goal=8, logs=[HabitLog(value=2.5, notes="gym")])
        assert Habit.model_validate_json(habit.model_dump_json()) == habit
