"""Shared test fixtures and configuration.

Sets up fake environment variables so lifely.config doesn't sys.exit(),
and provides common fixtures: an opened Entity Store on a temp file, a
controllable clock and a scripted Reasoning Service.
"""

import os

# Patch env vars BEFORE any lifely imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("REASONING_PROVIDER", "llm")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "UTC")

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from lifely.core.reasoning import ReasoningRequest, ReasoningResponse


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeReasoning:
    """ReasoningPort double: replays queued replies or errors, records requests."""

    def __init__(self, *replies) -> None:
        self.replies = list(replies)
        self.requests: list[ReasoningRequest] = []

    async def request(self, request: ReasoningRequest) -> ReasoningResponse:
        self.requests.append(request)
        reply = self.replies.pop(0) if self.replies else ReasoningResponse(response="OK")
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "lifely.db")


@pytest_asyncio.fixture
async def store(db_path):
    """Return an opened EntityStore backed by a temp file."""
    from lifely.data.store import EntityStore

    entity_store = EntityStore(db_path)
    await entity_store.open()
    yield entity_store
    await entity_store.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc))
