"""SQLite-backed persistence for focus sessions, the XP profile and events."""

import logging
import sqlite3
import uuid
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from lifeos.core.gamification import level_for_xp
from lifeos.core.models import (
    EventException,
    ExceptionStatus,
    FocusSession,
    RecurringEvent,
    TimerMode,
    UserProfile,
    XPUpdate,
)
from lifeos.persistence.base import ProfileStore, SessionLedger

logger = logging.getLogger(__name__)


class LifeStore(SessionLedger, ProfileStore):
    """Read/write interface to the local SQLite database.

    Implements the session ledger and profile store the focus timer
    reports to, and holds calendar events with their per-occurrence
    exceptions.  Timestamps are persisted as ISO 8601 text.
    """

    def __init__(self, db_path: str, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.db_path = db_path
        self._clock = clock or datetime.now
        self._conn: Optional[sqlite3.Connection] = None

    # ------------------------------------------------------------------
    # Connection helpers
    # ------------------------------------------------------------------

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ------------------------------------------------------------------
    # Schema initialisation
    # ------------------------------------------------------------------

    def init_db(self) -> None:
        """Create tables and indexes if they don't already exist."""
        conn = self._get_conn()
        conn.executescript(
            """\
            CREATE TABLE IF NOT EXISTS focus_sessions (
                id TEXT PRIMARY KEY,
                minutes INTEGER NOT NULL,
                task_id TEXT,
                mode TEXT NOT NULL DEFAULT 'focus',
                started_at TEXT NOT NULL,
                completed_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS user_profile (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                xp INTEGER NOT NULL DEFAULT 0,
                level INTEGER NOT NULL DEFAULT 0,
                focus_minutes INTEGER NOT NULL DEFAULT 0,
                sessions_completed INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS events (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                start_time TEXT NOT NULL,
                end_time TEXT NOT NULL,
                recurrence TEXT,
                all_day INTEGER NOT NULL DEFAULT 0,
                description TEXT NOT NULL DEFAULT '',
                location TEXT NOT NULL DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS event_exceptions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                parent_event_id TEXT NOT NULL,
                original_start TEXT NOT NULL,
                status TEXT NOT NULL,
                start_time TEXT,
                end_time TEXT,
                title TEXT,
                UNIQUE (parent_event_id, original_start),
                FOREIGN KEY (parent_event_id) REFERENCES events(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_session_completed
                ON focus_sessions(completed_at);

            CREATE INDEX IF NOT EXISTS idx_event_start
                ON events(start_time);

            CREATE INDEX IF NOT EXISTS idx_exception_parent
                ON event_exceptions(parent_event_id);
            """
        )
        conn.execute("INSERT OR IGNORE INTO user_profile (id) VALUES (1)")
        conn.commit()

        # Migrate: add columns if missing (existing DBs)
        self._migrate_add_column(conn, "focus_sessions", "mode", "TEXT NOT NULL DEFAULT 'focus'")
        self._migrate_add_column(conn, "events", "location", "TEXT NOT NULL DEFAULT ''")

    @staticmethod
    def _migrate_add_column(conn, table: str, column: str, col_type: str) -> None:
        """Add a column to a table if it doesn't exist yet."""
        columns = {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}
        if column in columns:
            return
        try:
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}")
            conn.commit()
        except sqlite3.OperationalError:
            logger.exception("Could not add column %s.%s", table, column)

    # ------------------------------------------------------------------
    # SessionLedger / ProfileStore
    # ------------------------------------------------------------------

    def record(
        self, minutes: int, task_id: Optional[str] = None, mode: TimerMode = TimerMode.FOCUS
    ) -> FocusSession:
        """Persist a session that completes now and bump profile totals."""
        minutes = max(0, int(minutes))
        completed_at = self._clock()
        session = FocusSession(
            id=str(uuid.uuid4()),
            minutes=minutes,
            task_id=task_id,
            started_at=completed_at - timedelta(minutes=minutes),
            completed_at=completed_at,
            mode=mode,
        )
        conn = self._get_conn()
        with conn:
            conn.execute(
                """\
                INSERT INTO focus_sessions
                    (id, minutes, task_id, mode, started_at, completed_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    session.id,
                    session.minutes,
                    session.task_id,
                    session.mode.value,
                    session.started_at.isoformat(),
                    session.completed_at.isoformat(),
                ),
            )
            if mode == TimerMode.FOCUS:
                conn.execute(
                    """\
                    UPDATE user_profile
                    SET focus_minutes = focus_minutes + ?,
                        sessions_completed = sessions_completed + 1
                    WHERE id = 1
                    """,
                    (minutes,),
                )
        return session

    def add_xp(self, amount: int) -> XPUpdate:
        """Add *amount* XP (negative clamps to 0) and re-derive the level."""
        amount = max(0, int(amount))
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR IGNORE INTO user_profile (id) VALUES (1)")
            conn.execute("UPDATE user_profile SET xp = xp + ? WHERE id = 1", (amount,))
            total = conn.execute("SELECT xp FROM user_profile WHERE id = 1").fetchone()["xp"]
            level = level_for_xp(total)
            conn.execute("UPDATE user_profile SET level = ? WHERE id = 1", (level,))
        return XPUpdate(new_total=total, new_level=level)

    def get_profile(self) -> UserProfile:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM user_profile WHERE id = 1").fetchone()
        if row is None:
            return UserProfile()
        return UserProfile(
            xp=row["xp"],
            level=row["level"],
            focus_minutes=row["focus_minutes"],
            sessions_completed=row["sessions_completed"],
        )

    def get_sessions(self, start: datetime, end: datetime) -> list[FocusSession]:
        """Return all sessions whose completed_at falls in [start, end)."""
        conn = self._get_conn()
        rows = conn.execute(
            """\
            SELECT * FROM focus_sessions
            WHERE completed_at >= ? AND completed_at < ?
            ORDER BY completed_at
            """,
            (start.isoformat(), end.isoformat()),
        ).fetchall()
        return [self._row_to_session(r) for r in rows]

    # ------------------------------------------------------------------
    # Calendar events
    # ------------------------------------------------------------------

    def save_event(self, event: RecurringEvent) -> None:
        """Insert or update an event (upsert by id)."""
        conn = self._get_conn()
        with conn:
            conn.execute(
                """\
                INSERT INTO events
                    (id, title, start_time, end_time, recurrence, all_day, description, location)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    start_time = excluded.start_time,
                    end_time = excluded.end_time,
                    recurrence = excluded.recurrence,
                    all_day = excluded.all_day,
                    description = excluded.description,
                    location = excluded.location
                """,
                (
                    event.id,
                    event.title,
                    event.start.isoformat(),
                    event.end.isoformat(),
                    event.recurrence_rule,
                    1 if event.all_day else 0,
                    event.description,
                    event.location,
                ),
            )

    def get_event_by_id(self, event_id: str) -> Optional[RecurringEvent]:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM events WHERE id = ?", (event_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_event(row)

    def get_events(self, start: datetime, end: datetime) -> list[RecurringEvent]:
        """Return events that may have an occurrence in [start, end].

        One-off events must overlap the window; recurring events are
        included whenever their series has begun by *end*.
        """
        conn = self._get_conn()
        rows = conn.execute(
            """\
            SELECT * FROM events
            WHERE start_time <= ?
              AND (recurrence IS NOT NULL OR end_time >= ?)
            ORDER BY start_time
            """,
            (end.isoformat(), start.isoformat()),
        ).fetchall()
        return [self._row_to_event(r) for r in rows]

    def delete_event(self, event_id: str) -> bool:
        """Delete an event and, via cascade, its exceptions."""
        conn = self._get_conn()
        with conn:
            cursor = conn.execute("DELETE FROM events WHERE id = ?", (event_id,))
        return cursor.rowcount > 0

    def save_exception(self, exc: EventException) -> None:
        """Insert or replace the exception for one occurrence."""
        conn = self._get_conn()
        with conn:
            conn.execute(
                """\
                INSERT OR REPLACE INTO event_exceptions
                    (parent_event_id, original_start, status, start_time, end_time, title)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    exc.parent_event_id,
                    exc.original_start.isoformat(),
                    exc.status.value,
                    exc.start.isoformat() if exc.start else None,
                    exc.end.isoformat() if exc.end else None,
                    exc.title,
                ),
            )

    def get_exceptions(self, parent_ids: Iterable[str]) -> list[EventException]:
        ids = list(parent_ids)
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        conn = self._get_conn()
        rows = conn.execute(
            f"SELECT * FROM event_exceptions WHERE parent_event_id IN ({placeholders}) "
            "ORDER BY original_start",
            ids,
        ).fetchall()
        return [self._row_to_exception(r) for r in rows]

    # ------------------------------------------------------------------
    # Row mapping helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> FocusSession:
        return FocusSession(
            id=row["id"],
            minutes=row["minutes"],
            task_id=row["task_id"],
            started_at=datetime.fromisoformat(row["started_at"]),
            completed_at=datetime.fromisoformat(row["completed_at"]),
            mode=TimerMode(row["mode"]),
        )

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> RecurringEvent:
        return RecurringEvent(
            id=row["id"],
            title=row["title"],
            start=datetime.fromisoformat(row["start_time"]),
            end=datetime.fromisoformat(row["end_time"]),
            recurrence_rule=row["recurrence"],
            all_day=bool(row["all_day"]),
            description=row["description"],
            location=row["location"],
        )

    @staticmethod
    def _row_to_exception(row: sqlite3.Row) -> EventException:
        return EventException(
            parent_event_id=row["parent_event_id"],
            original_start=datetime.fromisoformat(row["original_start"]),
            status=ExceptionStatus(row["status"]),
            start=datetime.fromisoformat(row["start_time"]) if row["start_time"] else None,
            end=datetime.fromisoformat(row["end_time"]) if row["end_time"] else None,
            title=row["title"],
        )
