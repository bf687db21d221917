"""
BowlBot — Game & Roster Engine.

Works out when the next game is, and owns all the roster arithmetic:
who is coming, how many extras they bring, and how many seats that adds
up to. Staleness is never stored: a game whose time has passed is simply
no longer the group's current game.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from src.data.models import Event, Group

if TYPE_CHECKING:
    from src.ports.store_port import StorePort

logger = logging.getLogger(__name__)


class EventExistsError(Exception):
    """Raised when a game is proposed while another one is still ahead."""

    def __init__(self, event: Event) -> None:
        super().__init__(f"Event {event.id} is already scheduled for {event.time}")
        self.event = event


@dataclass
class AttendanceChange:
    """Seat count for one attendee before and after /me.

    previous is None when this is their first sign-up.
    """

    previous: int | None
    current: int

    @property
    def extras(self) -> int:
        return self.current - 1


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


def is_configured(group: Group) -> bool:
    """A group can play once location, weekday and start time are all known."""
    return (
        bool(group.location)
        and group.weekday is not None
        and group.start_time is not None
    )


def next_occurrence(group: Group, now: datetime) -> datetime:
    """Start of day of the nearest date falling on the group's weekday.

    Today counts if today is that weekday.
    """
    days = (group.weekday - now.weekday()) % 7
    day = now + timedelta(days=days)
    return day.replace(hour=0, minute=0, second=0, microsecond=0)


def scheduled_time(group: Group, now: datetime) -> datetime:
    """Concrete start of the next game.

    If the game day is today but the start time has already gone by, the
    game is a week later.
    """
    day = next_occurrence(group, now)
    start = day.replace(hour=group.start_time.hour, minute=group.start_time.minute)
    if start <= now:
        start += timedelta(days=7)
    return start


def current_event(store: StorePort, group: Group, now: datetime) -> Event | None:
    """The group's game if it is still ahead of us, else None."""
    if not group.next_event_id:
        return None
    event = store.get_event(group.next_event_id)
    if event is None or event.time <= now:
        return None
    return event


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def propose(store: StorePort, group: Group, now: datetime) -> Event:
    """Create the next game and make it the group's current one.

    Two separate writes: the event, then the group's link to it. A failure
    in between leaves an unlinked event for the purge to collect.
    """
    existing = current_event(store, group, now)
    if existing is not None:
        raise EventExistsError(existing)

    event = Event(
        id=uuid.uuid4().hex,
        group_id=group.id,
        time=scheduled_time(group, now),
    )
    store.save_event(event)
    group.next_event_id = event.id
    store.save_group(group)
    logger.info("Group %d proposed game %s at %s", group.id, event.id, event.time)
    return event


def cancel(store: StorePort, group: Group) -> None:
    """Unlink the group's current game. The event record stays for the purge."""
    logger.info("Group %d cancelled game %s", group.id, group.next_event_id)
    group.next_event_id = None
    store.save_group(group)


def purge_past_events(
    store: StorePort, now: datetime, retention: timedelta = timedelta(hours=24),
) -> int:
    """Delete games that finished more than `retention` ago."""
    return store.purge_events_before(now - retention)


# ---------------------------------------------------------------------------
# Roster arithmetic
# ---------------------------------------------------------------------------


def parse_count(text: str) -> int | None:
    """Parse a positive integer from free text. None if it isn't one."""
    text = text.strip()
    try:
        n = int(text)
    except ValueError:
        return None
    if n < 1:
        return None
    return n


def record_attendance(
    store: StorePort, event: Event, user_id: int, extra_guests: int,
) -> AttendanceChange:
    """Set the attendee's seats to extra_guests + 1, replacing any earlier count."""
    if extra_guests < 0:
        raise ValueError(f"extra_guests must be >= 0, got {extra_guests}")
    previous = event.attendees.get(user_id)
    event.attendees[user_id] = extra_guests + 1
    store.save_event(event)
    return AttendanceChange(previous=previous, current=extra_guests + 1)


def reduce_attendance(
    store: StorePort, event: Event, user_id: int, reduce_by: int,
) -> int | None:
    """Drop some extras. Never goes below the attendee's own seat.

    Returns the new seat count, or None if they weren't coming.
    """
    if reduce_by < 1:
        raise ValueError(f"reduce_by must be >= 1, got {reduce_by}")
    current = event.attendees.get(user_id)
    if current is None:
        return None
    coming = max(1, current - reduce_by)
    event.attendees[user_id] = coming
    store.save_event(event)
    return coming


def withdraw(store: StorePort, event: Event, user_id: int) -> bool:
    """Take the attendee off the roster. False if they weren't on it."""
    if user_id not in event.attendees:
        return False
    del event.attendees[user_id]
    store.save_event(event)
    return True


def total_attendance(event: Event) -> int:
    return sum(event.attendees.values())
