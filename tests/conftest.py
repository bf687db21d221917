"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures like a temp DB, a recording chat and a clock.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "UTC")

from datetime import datetime, time, timezone

import pytest


class FakeChat:
    """ChatPort that records every message and hands out sequential ids."""

    def __init__(self, first_id: int = 1000) -> None:
        self.sent: list[dict] = []
        self._next_id = first_id

    async def send_message(
        self, chat_id, text, *, reply_to=None, markup=None, silent=False, markdown=False,
    ) -> int:
        self._next_id += 1
        self.sent.append({
            "id": self._next_id,
            "chat_id": chat_id,
            "text": text,
            "reply_to": reply_to,
            "markup": markup,
            "silent": silent,
            "markdown": markdown,
        })
        return self._next_id

    @property
    def last(self) -> dict:
        return self.sent[-1]


class FakeClock:
    """Settable wall clock for the dispatcher."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeMonotonic:
    """Settable monotonic clock for the conversation tracker."""

    def __init__(self) -> None:
        self.value = 0.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


# Wednesday
WEDNESDAY_NOON = datetime(2026, 2, 4, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_bowling.db")


@pytest.fixture
def bowling_db(tmp_db_path):
    """Return a BowlingDB instance backed by a temp file."""
    from src.data.db import BowlingDB
    return BowlingDB(db_path=tmp_db_path)


@pytest.fixture
def configured_group(bowling_db):
    """A saved group that bowls Fridays at 18:00 at Acme Lanes."""
    from src.data.models import Group
    group = Group(
        id=-100, name="Bowlers", location="Acme Lanes",
        weekday=4, start_time=time(18, 0),
    )
    bowling_db.save_group(group)
    return group


@pytest.fixture
def fake_chat():
    return FakeChat()


@pytest.fixture
def clock():
    return FakeClock(WEDNESDAY_NOON)


@pytest.fixture
def monotonic():
    return FakeMonotonic()
