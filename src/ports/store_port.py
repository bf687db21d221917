"""Store port — abstract interface for durable records.

Core modules depend on this protocol, never on a specific database.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from src.data.models import Event, Group, User


class StoreError(Exception):
    """Raised when a store write fails."""


class StorePort(Protocol):
    """Keyed load/save of groups, games and users."""

    def get_group(self, group_id: int) -> Group: ...

    def save_group(self, group: Group) -> None: ...

    def get_event(self, event_id: str) -> Event | None: ...

    def save_event(self, event: Event) -> None: ...

    def delete_event(self, event_id: str) -> bool: ...

    def purge_events_before(self, cutoff: datetime) -> int: ...

    def save_user(self, user: User) -> None: ...

    def load_user(self, user_id: int) -> User: ...
