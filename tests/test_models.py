"""Tests for src.data.models — Group, Event and User dataclasses."""

from dataclasses import asdict
from datetime import datetime, timezone

from src.data.models import Event, Group, User


def test_group_defaults():
    group = Group(id=-1)
    assert group.name == ""
    assert group.location is None
    assert group.weekday is None
    assert group.start_time is None
    assert group.next_event_id is None


def test_event_roster_not_shared():
    when = datetime(2026, 2, 6, 18, 0, tzinfo=timezone.utc)
    a = Event(id="a", group_id=-1, time=when)
    b = Event(id="b", group_id=-1, time=when)
    a.attendees[1] = 2
    assert b.attendees == {}


def test_user_display_name_prefers_username():
    user = User(id=1, first_name="Ada", last_name="Lovelace", username="ada")
    assert user.display_name == "ada"


def test_user_display_name_full_name():
    assert User(id=1, first_name="Ada", last_name="Lovelace").display_name == "Ada Lovelace"
    assert User(id=1, first_name="Ada").display_name == "Ada"


def test_user_display_name_falls_back_to_id():
    assert User(id=42).display_name == "42"


def test_event_serializable():
    when = datetime(2026, 2, 6, 18, 0, tzinfo=timezone.utc)
    d = asdict(Event(id="x", group_id=-1, time=when, attendees={1: 3}))
    assert d["attendees"] == {1: 3}
    assert d["time"] == when
