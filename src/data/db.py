"""
BowlBot — Bowling Database.

Groups, games and users persist in SQLite across restarts. Each write is a
single-record upsert; there are no multi-record transactions.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, time
from pathlib import Path

from src.data.models import Event, Group, User
from src.ports.store_port import StoreError

logger = logging.getLogger(__name__)


class BowlingDB:
    """SQLite-backed storage implementing StorePort."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the tables if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS groups (
                    id            INTEGER PRIMARY KEY,
                    name          TEXT NOT NULL DEFAULT '',
                    location      TEXT,
                    weekday       INTEGER,
                    start_time    TEXT,
                    next_event_id TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    id         TEXT PRIMARY KEY,
                    group_id   INTEGER NOT NULL,
                    time       TEXT    NOT NULL,
                    time_ts    REAL    NOT NULL,
                    attendees  TEXT    NOT NULL DEFAULT '{}'
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_group ON events (group_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_time ON events (time_ts)"
            )
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id         INTEGER PRIMARY KEY,
                    first_name TEXT NOT NULL DEFAULT '',
                    last_name  TEXT NOT NULL DEFAULT '',
                    username   TEXT NOT NULL DEFAULT ''
                )
            """)
        logger.debug("Bowling tables initialized at %s", self._db_path)

    def _write(self, sql: str, params: tuple) -> int:
        """Run a single write statement, returning the affected row count."""
        try:
            with self._connect() as conn:
                cursor = conn.execute(sql, params)
            return cursor.rowcount
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    def _read(self, sql: str, params: tuple) -> sqlite3.Row | None:
        """Fetch a single row, or None."""
        try:
            with self._connect() as conn:
                return conn.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    # -- groups -------------------------------------------------------------

    @staticmethod
    def _row_to_group(row: sqlite3.Row) -> Group:
        start = row["start_time"]
        return Group(
            id=row["id"],
            name=row["name"],
            location=row["location"],
            weekday=row["weekday"],
            start_time=time.fromisoformat(start) if start else None,
            next_event_id=row["next_event_id"],
        )

    def get_group(self, group_id: int) -> Group:
        """Fetch a group, or a fresh unsaved one if this chat is new."""
        row = self._read("SELECT * FROM groups WHERE id = ?", (group_id,))
        if row is None:
            logger.warning("No bowling group for chat %d yet", group_id)
            return Group(id=group_id)
        return self._row_to_group(row)

    def save_group(self, group: Group) -> None:
        start = group.start_time.strftime("%H:%M") if group.start_time else None
        self._write(
            """
            INSERT OR REPLACE INTO groups
                (id, name, location, weekday, start_time, next_event_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                group.id, group.name, group.location, group.weekday,
                start, group.next_event_id,
            ),
        )
        logger.info("Group %d saved", group.id)

    # -- events -------------------------------------------------------------

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> Event:
        attendees = {int(k): int(v) for k, v in json.loads(row["attendees"]).items()}
        return Event(
            id=row["id"],
            group_id=row["group_id"],
            time=datetime.fromisoformat(row["time"]),
            attendees=attendees,
        )

    def get_event(self, event_id: str) -> Event | None:
        """Fetch a single game by ID."""
        row = self._read("SELECT * FROM events WHERE id = ?", (event_id,))
        if row is None:
            logger.warning("Event %s not found", event_id)
            return None
        return self._row_to_event(row)

    def save_event(self, event: Event) -> None:
        self._write(
            """
            INSERT OR REPLACE INTO events (id, group_id, time, time_ts, attendees)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.id, event.group_id, event.time.isoformat(),
                event.time.timestamp(), json.dumps(event.attendees),
            ),
        )
        logger.info(
            "Event %s saved: %s, %d on the roster",
            event.id, event.time.isoformat(), len(event.attendees),
        )

    def delete_event(self, event_id: str) -> bool:
        deleted = self._write("DELETE FROM events WHERE id = ?", (event_id,)) > 0
        if deleted:
            logger.info("Event %s deleted", event_id)
        return deleted

    def purge_events_before(self, cutoff: datetime) -> int:
        """Delete every game scheduled before cutoff. Returns how many went."""
        count = self._write(
            "DELETE FROM events WHERE time_ts < ?", (cutoff.timestamp(),)
        )
        if count:
            logger.info("Purged %d events before %s", count, cutoff.isoformat())
        return count

    # -- users --------------------------------------------------------------

    def save_user(self, user: User) -> None:
        self._write(
            """
            INSERT OR REPLACE INTO users (id, first_name, last_name, username)
            VALUES (?, ?, ?, ?)
            """,
            (user.id, user.first_name, user.last_name, user.username),
        )

    def load_user(self, user_id: int) -> User:
        """Fetch a cached user. A miss degrades to a User carrying only its id."""
        try:
            row = self._read("SELECT * FROM users WHERE id = ?", (user_id,))
        except StoreError as exc:
            logger.error("Unable to load user %d: %s", user_id, exc)
            return User(id=user_id)
        if row is None:
            logger.error("Unable to load user %d: not cached", user_id)
            return User(id=user_id)
        return User(
            id=row["id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            username=row["username"],
        )
