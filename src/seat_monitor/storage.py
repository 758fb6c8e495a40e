"""SQLite storage layer for seat-monitor.

The client keeps one durable record: the ordered collection of monitored
events, serialized as JSON under a fixed key in the ``app_state`` table.
"""

import json
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

from seat_monitor.models import MonitoredEvent

log = structlog.get_logger()

SCHEMA_VERSION = 1

EVENTS_KEY = "monitored_events"

SCHEMA = """
CREATE TABLE IF NOT EXISTS app_state (
    key TEXT PRIMARY KEY,
    value TEXT,
    updated_at REAL
);
"""


class StorageError(Exception):
    """Raised when the durable store cannot be read or written."""

    pass


def init_database(db_path: Path) -> None:
    """Initialize database with WAL mode and schema.

    If the database exists with a different schema version or cannot be
    opened, it is deleted and recreated. No migrations - schema mismatch
    means fresh start.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    if db_path.exists():
        conn = sqlite3.connect(db_path)
        try:
            existing_version = _get_schema_version_raw(conn)
            if existing_version == SCHEMA_VERSION:
                conn.close()
                return
            log.info(
                "schema_mismatch",
                existing=existing_version,
                expected=SCHEMA_VERSION,
                action="recreate",
            )
        except sqlite3.DatabaseError:
            log.warning("database_unreadable", path=str(db_path), action="recreate")
        conn.close()
        _remove_database(db_path)

    conn = sqlite3.connect(db_path)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.executescript(SCHEMA)
        conn.execute(
            "INSERT OR REPLACE INTO app_state (key, value, updated_at) VALUES (?, ?, ?)",
            ("schema_version", str(SCHEMA_VERSION), time.time()),
        )
        conn.commit()
        log.info("database_initialized", path=str(db_path), version=SCHEMA_VERSION)
    finally:
        conn.close()


def _remove_database(db_path: Path) -> None:
    """Delete the database file and its WAL/SHM companions."""
    db_path.unlink()
    for suffix in (".db-wal", ".db-shm"):
        companion = db_path.with_suffix(suffix)
        if companion.exists():
            companion.unlink()


def _get_schema_version_raw(conn: sqlite3.Connection) -> int:
    """Get schema version without error handling (for init_database use)."""
    row = conn.execute("SELECT value FROM app_state WHERE key = 'schema_version'").fetchone()
    return int(row[0]) if row else 0


@contextmanager
def open_database(db_path: Path) -> Generator[sqlite3.Connection, None, None]:
    """Open the database, creating it if needed.

    Raises:
        StorageError: If the database cannot be created or opened
    """
    try:
        init_database(db_path)
        conn = sqlite3.connect(db_path)
    except (sqlite3.Error, OSError) as e:
        raise StorageError(f"Cannot open {db_path}: {e}") from e
    try:
        yield conn
    finally:
        conn.close()


def get_state(conn: sqlite3.Connection, key: str) -> str | None:
    """Get a value from the app_state table."""
    try:
        row = conn.execute("SELECT value FROM app_state WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None
    except sqlite3.OperationalError:
        return None


def set_state(conn: sqlite3.Connection, key: str, value: str) -> None:
    """Set a value in the app_state table."""
    conn.execute(
        "INSERT OR REPLACE INTO app_state (key, value, updated_at) VALUES (?, ?, ?)",
        (key, value, time.time()),
    )
    conn.commit()


def load_events(db_path: Path) -> list[MonitoredEvent]:
    """Read the stored event collection in display order.

    A missing or corrupt record is treated as empty. Individual records that
    cannot be parsed are skipped.

    Raises:
        StorageError: If the database cannot be opened
    """
    with open_database(db_path) as conn:
        raw = get_state(conn, EVENTS_KEY)

    if raw is None:
        return []

    try:
        records = json.loads(raw)
    except json.JSONDecodeError as e:
        log.warning("stored_events_corrupt", error=str(e))
        return []
    if not isinstance(records, list):
        log.warning("stored_events_corrupt", error="not a list")
        return []

    events: list[MonitoredEvent] = []
    for record in records:
        try:
            events.append(MonitoredEvent.from_dict(record))
        except (KeyError, TypeError, AttributeError) as e:
            log.warning("stored_event_skipped", error=str(e))
    return events


def save_events(db_path: Path, events: list[MonitoredEvent]) -> None:
    """Rewrite the stored event collection.

    Raises:
        StorageError: If the write fails
    """
    payload = json.dumps([event.to_dict() for event in events])
    with open_database(db_path) as conn:
        try:
            set_state(conn, EVENTS_KEY, payload)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to save events: {e}") from e
