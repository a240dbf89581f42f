"""
SQLite storage for time capsules.

Two independent ordered maps live in one database file, one for
individual capsules and one for community capsules, plus an
append-only table of lifecycle events.

Design Principles:
    - Bounded: keys and serialized values have hard size limits
    - No truncation: an oversized record is rejected, never clipped
    - Atomic: read-modify-write sequences run inside transaction()
    - Never deleted: there is no delete path for capsule records

Tables:
    - time_capsules: Individual capsules keyed by id
    - community_capsules: Community capsules keyed by id
    - capsule_events: Lifecycle notifications for audit
"""

import sqlite3
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Generator

from timecapsule.errors import (
    RecordTooLargeError,
    StorageConnectionError,
    StorageReadError,
    StorageWriteError,
)
from timecapsule.events import CapsuleEvent, EventKind
from timecapsule.schema import CommunityTimeCapsule, TimeCapsule

# Schema version for migrations
SCHEMA_VERSION = 1

DEFAULT_MAX_KEY_BYTES = 44
DEFAULT_MAX_VALUE_BYTES = 1024

CAPSULES_TABLE = "time_capsules"
COMMUNITY_TABLE = "community_capsules"

CREATE_TABLES_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

-- Individual capsules
CREATE TABLE IF NOT EXISTS time_capsules (
    key TEXT PRIMARY KEY,
    value_json TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Community capsules
CREATE TABLE IF NOT EXISTS community_capsules (
    key TEXT PRIMARY KEY,
    value_json TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Lifecycle events, append-only
CREATE TABLE IF NOT EXISTS capsule_events (
    event_id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    caller TEXT NOT NULL,
    capsule_id TEXT NOT NULL,
    reveal_date TEXT NOT NULL,
    recorded_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_capsule_events_capsule_id ON capsule_events(capsule_id);
"""


def now_iso() -> str:
    """Get current UTC time in ISO format."""
    return datetime.now(UTC).isoformat()


class CapsuleDB:
    """
    SQLite database for capsule storage.

    Usage:
        db = CapsuleDB("timecapsule.db")
        db.insert_capsule(capsule)
        db.get_capsule(capsule.id)
        db.close()

    Or use as context manager:
        with CapsuleDB("timecapsule.db") as db:
            ...

    Writes commit immediately unless they run inside transaction(), in
    which case the whole block commits or rolls back together.
    """

    def __init__(
        self,
        db_path: str | Path,
        max_key_bytes: int = DEFAULT_MAX_KEY_BYTES,
        max_value_bytes: int = DEFAULT_MAX_VALUE_BYTES,
    ) -> None:
        """
        Initialize the database connection.

        Args:
            db_path: Path to the SQLite database file.
                     Will be created if it doesn't exist.
            max_key_bytes: Largest accepted key, in UTF-8 bytes
            max_value_bytes: Largest accepted serialized record, in UTF-8 bytes
        """
        self.db_path = Path(db_path)
        self.max_key_bytes = max_key_bytes
        self.max_value_bytes = max_value_bytes
        self._conn: sqlite3.Connection | None = None
        self._in_transaction = False
        self._connect()
        self._init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self._conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
            )
            self._conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            raise StorageConnectionError(
                db_path=str(self.db_path),
                operation="connect",
                message=f"Failed to connect to database: {e}",
            ) from e

    def _init_schema(self) -> None:
        """Initialize database schema if needed."""
        try:
            cursor = self._conn.executescript(CREATE_TABLES_SQL)
            cursor.close()

            cursor = self._conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            row = cursor.fetchone()
            if row is None:
                self._conn.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (SCHEMA_VERSION, now_iso()),
                )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="init_schema",
                underlying_error=str(e),
            ) from e

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """
        Run a block as one atomic step.

        The write lock is taken up front so a read followed by a write
        cannot interleave with another connection's writes.
        """
        if self._in_transaction:
            yield
            return
        try:
            self._conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="begin_transaction",
                underlying_error=str(e),
            ) from e
        self._in_transaction = True
        try:
            yield
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise
        finally:
            self._in_transaction = False

    def _commit(self) -> None:
        if not self._in_transaction:
            self._conn.commit()

    def _abandon(self) -> None:
        """Roll back a failed standalone write so the connection is reusable."""
        if not self._in_transaction:
            self._conn.rollback()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "CapsuleDB":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    # =========================================================================
    # Bounded Map Primitives
    # =========================================================================

    def _check_bounds(self, key: str, value_json: str) -> None:
        """Reject keys or values over the configured byte limits."""
        key_size = len(key.encode("utf-8"))
        if key_size > self.max_key_bytes:
            raise RecordTooLargeError(
                capsule_id=key,
                field_name="key",
                actual_size=key_size,
                max_size=self.max_key_bytes,
            )
        value_size = len(value_json.encode("utf-8"))
        if value_size > self.max_value_bytes:
            raise RecordTooLargeError(
                capsule_id=key,
                field_name="record",
                actual_size=value_size,
                max_size=self.max_value_bytes,
            )

    def _insert(self, table: str, key: str, value_json: str) -> None:
        self._check_bounds(key, value_json)
        timestamp = now_iso()
        try:
            self._conn.execute(
                f"INSERT INTO {table} (key, value_json, created_at, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (key, value_json, timestamp, timestamp),
            )
            self._commit()
        except sqlite3.Error as e:
            self._abandon()
            raise StorageWriteError(
                operation=f"insert_{table}",
                underlying_error=str(e),
            ) from e

    def _replace(self, table: str, key: str, value_json: str) -> None:
        self._check_bounds(key, value_json)
        try:
            cursor = self._conn.execute(
                f"UPDATE {table} SET value_json = ?, updated_at = ? WHERE key = ?",
                (value_json, now_iso(), key),
            )
            if cursor.rowcount != 1:
                self._abandon()
                raise StorageWriteError(
                    operation=f"replace_{table}",
                    underlying_error=f"no row with key {key}",
                )
            self._commit()
        except sqlite3.Error as e:
            self._abandon()
            raise StorageWriteError(
                operation=f"replace_{table}",
                underlying_error=str(e),
            ) from e

    def _get_json(self, table: str, key: str) -> str | None:
        try:
            cursor = self._conn.execute(
                f"SELECT value_json FROM {table} WHERE key = ?",
                (key,),
            )
            row = cursor.fetchone()
            return row["value_json"] if row else None
        except sqlite3.Error as e:
            raise StorageReadError(
                operation=f"get_{table}",
                underlying_error=str(e),
            ) from e

    def _count(self, table: str) -> int:
        try:
            cursor = self._conn.execute(f"SELECT COUNT(*) AS n FROM {table}")
            return cursor.fetchone()["n"]
        except sqlite3.Error as e:
            raise StorageReadError(
                operation=f"count_{table}",
                underlying_error=str(e),
            ) from e

    # =========================================================================
    # Individual Capsules
    # =========================================================================

    def insert_capsule(self, capsule: TimeCapsule) -> None:
        """
        Store a new capsule under its id.

        Raises:
            RecordTooLargeError: If the id or serialized record is over the limit
            StorageWriteError: If the id is already taken or the write fails
        """
        self._insert(CAPSULES_TABLE, capsule.id, capsule.model_dump_json())

    def replace_capsule(self, capsule: TimeCapsule) -> None:
        """Overwrite an existing capsule record."""
        self._replace(CAPSULES_TABLE, capsule.id, capsule.model_dump_json())

    def get_capsule(self, capsule_id: str) -> TimeCapsule | None:
        """
        Get a capsule by ID.

        Returns:
            TimeCapsule or None if not found
        """
        value_json = self._get_json(CAPSULES_TABLE, capsule_id)
        if value_json is None:
            return None
        return TimeCapsule.model_validate_json(value_json)

    def get_capsule_json(self, capsule_id: str) -> str | None:
        """Get the stored serialized form of a capsule, exactly as written."""
        return self._get_json(CAPSULES_TABLE, capsule_id)

    def count_capsules(self) -> int:
        return self._count(CAPSULES_TABLE)

    # =========================================================================
    # Community Capsules
    # =========================================================================

    def insert_community_capsule(self, capsule: CommunityTimeCapsule) -> None:
        """Store a new community capsule under its id."""
        self._insert(COMMUNITY_TABLE, capsule.id, capsule.model_dump_json())

    def get_community_capsule(self, capsule_id: str) -> CommunityTimeCapsule | None:
        """Get a community capsule by ID, or None if not found."""
        value_json = self._get_json(COMMUNITY_TABLE, capsule_id)
        if value_json is None:
            return None
        return CommunityTimeCapsule.model_validate_json(value_json)

    def count_community_capsules(self) -> int:
        return self._count(COMMUNITY_TABLE)

    # =========================================================================
    # Events
    # =========================================================================

    def record_event(self, event: CapsuleEvent) -> None:
        """Append a lifecycle event to the audit table."""
        try:
            self._conn.execute(
                """
                INSERT INTO capsule_events (
                    kind, caller, capsule_id, reveal_date, recorded_at
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (
                    event.kind.value,
                    event.caller,
                    event.capsule_id,
                    event.reveal_date.isoformat(),
                    event.recorded_at.isoformat(),
                ),
            )
            self._commit()
        except sqlite3.Error as e:
            self._abandon()
            raise StorageWriteError(
                operation="record_event",
                underlying_error=str(e),
            ) from e

    def get_events(self, capsule_id: str) -> list[CapsuleEvent]:
        """
        Get all events for a capsule.

        Returns:
            List of CapsuleEvent objects, oldest first
        """
        try:
            cursor = self._conn.execute(
                """
                SELECT * FROM capsule_events
                WHERE capsule_id = ?
                ORDER BY event_id
                """,
                (capsule_id,),
            )
            events = []
            for row in cursor:
                events.append(
                    CapsuleEvent(
                        kind=EventKind(row["kind"]),
                        caller=row["caller"],
                        capsule_id=row["capsule_id"],
                        reveal_date=datetime.fromisoformat(row["reveal_date"]),
                        recorded_at=datetime.fromisoformat(row["recorded_at"]),
                    )
                )
            return events
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="get_events",
                underlying_error=str(e),
            ) from e
