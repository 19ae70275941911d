"""Local state management for change feed listeners.

This module provides:
- CursorStore: SQLite-based persistence of feed cursors

Architecture:
    Each managed change source owns one key in the store. The value is an
    opaque cursor (a page token, or the end of the last polled time
    window); no structure is assumed. A cursor is written only after a
    complete pagination sweep, so a restart resumes from the last
    fully-consumed point.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class StoredCursor:
    """A persisted cursor.

    Attributes:
        source: Key of the change source owning the cursor.
        value: Opaque cursor value.
        updated_at: Timestamp when the cursor was last written.
    """

    source: str
    value: str
    updated_at: float

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> StoredCursor:
        """Create StoredCursor from database row."""
        return cls(
            source=row["source"],
            value=row["value"],
            updated_at=row["updated_at"],
        )


class CursorStore:
    """SQLite-based cursor persistence, one cursor per source key."""

    def __init__(self, db_path: Path) -> None:
        """Initialize the cursor database.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Listener threads and the CLI may share one store
        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS feed_cursors (
                source TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at REAL NOT NULL
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> CursorStore:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def get(self, source: str) -> str | None:
        """Get the cursor of a source.

        Args:
            source: Source key.

        Returns:
            Cursor value, or None if the source never completed a sweep.
        """
        stored = self.get_entry(source)
        return stored.value if stored else None

    def get_entry(self, source: str) -> StoredCursor | None:
        """Get the cursor of a source with its metadata."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT * FROM feed_cursors WHERE source = ?",
                (source,),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return StoredCursor.from_row(row)

    def set(self, source: str, value: str) -> None:
        """Persist the cursor of a source (upsert).

        Args:
            source: Source key.
            value: Opaque cursor value. Must not be empty.
        """
        if not value:
            raise ValueError(f"Refusing to store an empty cursor for {source}")
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO feed_cursors (source, value, updated_at) "
                "VALUES (?, ?, ?)",
                (source, value, time.time()),
            )
        logger.debug("Stored cursor for %s: %s", source, value)

    def delete(self, source: str) -> bool:
        """Forget the cursor of a source.

        Returns:
            True if a cursor was removed.
        """
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM feed_cursors WHERE source = ?",
                (source,),
            )
        return cursor.rowcount > 0

    def list_cursors(self) -> list[StoredCursor]:
        """List all stored cursors ordered by source."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT * FROM feed_cursors ORDER BY source"
            )
            rows = cursor.fetchall()
        return [StoredCursor.from_row(row) for row in rows]
