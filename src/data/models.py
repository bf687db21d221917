"""
BowlBot — Data Models.

Groups, games and the people who turn up to them. All three persist in
SQLite; dialog state does not.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time


@dataclass
class Group:
    """A chat's recurring bowling night and its pointer to the next game."""

    id: int                            # Telegram chat id
    name: str = ""                     # chat title
    location: str | None = None        # e.g. "Acme Lanes"
    weekday: int | None = None         # 0 = Monday ... 6 = Sunday
    start_time: time | None = None     # e.g. time(18, 0)
    next_event_id: str | None = None   # weak reference to Event.id


@dataclass
class Event:
    """One concrete game, with its roster.

    attendees maps user id → total seats (1 = just them, N = them + N-1 extras).
    """

    id: str
    group_id: int
    time: datetime
    attendees: dict[int, int] = field(default_factory=dict)


@dataclass
class User:
    """Cached identity of someone who talked in a group, for rendering rosters."""

    id: int
    first_name: str = ""
    last_name: str = ""
    username: str = ""

    @property
    def display_name(self) -> str:
        if self.username:
            return self.username
        name = self.first_name
        if self.last_name:
            name += " " + self.last_name
        return name or str(self.id)
