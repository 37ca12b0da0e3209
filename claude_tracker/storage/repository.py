"""
Repository pattern for data access.

Handles the sessions table and the two sync ledger tables:
synced_days (one marker per completed work day) and synced_entries
(one audit row per posted time entry).
"""

from datetime import date, datetime, timezone, tzinfo
from typing import List, Optional

from .db import DEFAULT_DB_PATH, get_connection
from .models import DayState, Session, SyncedEntry
from claude_tracker.core.token_counter import TokenUsage

# Fixed-width UTC format so that string comparison in SQL is chronological
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_SESSION_COLUMNS = """
    source_path, project, start_time, end_time, duration_seconds,
    input_tokens, output_tokens, cache_creation_input_tokens,
    cache_read_input_tokens
"""


def format_timestamp(value: datetime) -> str:
    """Render an aware datetime as a second-precision UTC string."""
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored UTC string back into an aware datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def _row_to_session(row) -> Session:
    return Session(
        source_path=row[0],
        project=row[1],
        start=parse_timestamp(row[2]),
        end=parse_timestamp(row[3]),
        duration_seconds=row[4],
        usage=TokenUsage(
            input_tokens=row[5],
            output_tokens=row[6],
            cache_creation_input_tokens=row[7],
            cache_read_input_tokens=row[8],
        ),
    )


class LedgerRepository:
    """Repository for sessions and sync progress.

    Every method opens its own connection and commits before returning,
    so each write is durable by the time the call completes. A single
    process is assumed to own the database.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH, tz: Optional[tzinfo] = None):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
            tz: Timezone used to derive a session's calendar date
                (system local time when None)
        """
        self.db_path = db_path
        self.tz = tz

    def upsert_session(self, session: Session) -> None:
        """Insert a session or replace every field of the existing row.

        Re-applying the same snapshot is a no-op in effect; applying a newer
        snapshot of a still-growing session overwrites the old one.

        Args:
            session: Session snapshot keyed by its source_path
        """
        local_date = session.start.astimezone(self.tz).date().isoformat()
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT OR REPLACE INTO sessions (
                    source_path, project, date, start_time, end_time,
                    duration_seconds, input_tokens, output_tokens,
                    cache_creation_input_tokens, cache_read_input_tokens
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                session.source_path,
                session.project,
                local_date,
                format_timestamp(session.start),
                format_timestamp(session.end),
                session.duration_seconds,
                session.usage.input_tokens,
                session.usage.output_tokens,
                session.usage.cache_creation_input_tokens,
                session.usage.cache_read_input_tokens,
            ))
            conn.commit()
        finally:
            conn.close()

    def get_session(self, source_path: str) -> Optional[Session]:
        """Fetch a single session by its source path, or None."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE source_path = ?",
                (source_path,)
            )
            row = cursor.fetchone()
            return _row_to_session(row) if row else None
        finally:
            conn.close()

    def query_range(self, start: datetime, end: datetime) -> List[Session]:
        """Return every session whose interval overlaps [start, end).

        Uses start_time < end AND end_time >= start rather than matching a
        single date, so a session crossing midnight shows up in both days.

        Args:
            start: Window start (aware datetime)
            end: Window end (aware datetime)

        Returns:
            Sessions ordered by start time, then source path
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(f"""
                SELECT {_SESSION_COLUMNS}
                FROM sessions
                WHERE start_time < ? AND end_time >= ?
                ORDER BY start_time, source_path
            """, (format_timestamp(end), format_timestamp(start)))
            return [_row_to_session(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def earliest_session_date(self) -> Optional[date]:
        """Local calendar date of the earliest stored session, if any."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("SELECT MIN(date) FROM sessions").fetchone()
            if row is None or row[0] is None:
                return None
            return date.fromisoformat(row[0])
        finally:
            conn.close()

    def is_day_synced(self, day: date, workspace_id: str) -> bool:
        """True once the day marker for (day, workspace) has been written."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT 1 FROM synced_days WHERE date = ? AND workspace_id = ?",
                (day.isoformat(), workspace_id)
            ).fetchone()
            return row is not None
        finally:
            conn.close()

    def is_entry_synced(self, day: date, workspace_id: str, project_id: str) -> bool:
        """True if a time entry for this project was already posted for the day."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("""
                SELECT 1 FROM synced_entries
                WHERE date = ? AND workspace_id = ? AND project_id = ?
            """, (day.isoformat(), workspace_id, project_id)).fetchone()
            return row is not None
        finally:
            conn.close()

    def mark_entry_synced(
        self,
        day: date,
        workspace_id: str,
        project_id: str,
        entry_id: str
    ) -> None:
        """Record a successfully posted entry.

        Must be called right after the post succeeds and before any other
        entry for the day is attempted. The primary key rejects a second
        row for the same (day, workspace, project).

        Raises:
            sqlite3.IntegrityError: If the entry was already recorded
        """
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO synced_entries (date, workspace_id, project_id, entry_id, synced_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                day.isoformat(),
                workspace_id,
                project_id,
                entry_id,
                format_timestamp(datetime.now(timezone.utc)),
            ))
            conn.commit()
        finally:
            conn.close()

    def mark_day_synced(self, day: date, workspace_id: str) -> None:
        """Write the day marker. Only valid after every entry is recorded."""
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT OR IGNORE INTO synced_days (date, workspace_id, synced_at)
                VALUES (?, ?, ?)
            """, (
                day.isoformat(),
                workspace_id,
                format_timestamp(datetime.now(timezone.utc)),
            ))
            conn.commit()
        finally:
            conn.close()

    def synced_entries(self, day: date, workspace_id: str) -> List[SyncedEntry]:
        """Audit rows recorded for a day, ordered by project id."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT date, workspace_id, project_id, entry_id
                FROM synced_entries
                WHERE date = ? AND workspace_id = ?
                ORDER BY project_id
            """, (day.isoformat(), workspace_id))
            return [
                SyncedEntry(
                    day=date.fromisoformat(row[0]),
                    workspace_id=row[1],
                    project_id=row[2],
                    entry_id=row[3]
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    def day_state(self, day: date, workspace_id: str) -> DayState:
        """Derive the day's sync state from persisted rows alone."""
        if self.is_day_synced(day, workspace_id):
            return DayState.COMPLETE
        if self.synced_entries(day, workspace_id):
            return DayState.PARTIAL
        return DayState.UNSYNCED


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the sessions and sync ledger tables if they don't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS sessions (
                source_path                  TEXT    PRIMARY KEY,
                project                      TEXT    NOT NULL,
                date                         TEXT    NOT NULL,
                start_time                   TEXT    NOT NULL,
                end_time                     TEXT    NOT NULL,
                duration_seconds             INTEGER NOT NULL,
                input_tokens                 INTEGER NOT NULL DEFAULT 0,
                output_tokens                INTEGER NOT NULL DEFAULT 0,
                cache_creation_input_tokens  INTEGER NOT NULL DEFAULT 0,
                cache_read_input_tokens      INTEGER NOT NULL DEFAULT 0
            );
            CREATE INDEX IF NOT EXISTS idx_sessions_range
                ON sessions (start_time, end_time);
            CREATE TABLE IF NOT EXISTS synced_days (
                date          TEXT NOT NULL,
                workspace_id  TEXT NOT NULL,
                synced_at     TEXT NOT NULL,
                PRIMARY KEY (date, workspace_id)
            );
            CREATE TABLE IF NOT EXISTS synced_entries (
                date          TEXT NOT NULL,
                workspace_id  TEXT NOT NULL,
                project_id    TEXT NOT NULL,
                entry_id      TEXT NOT NULL,
                synced_at     TEXT NOT NULL,
                PRIMARY KEY (date, workspace_id, project_id)
            );
        """)
        conn.commit()
    finally:
        conn.close()
