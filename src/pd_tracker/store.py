"""SQLite-backed entry store.

The database file is the source of truth for a device's entries.
Each public operation is its own transaction: it either commits in full
or is rolled back, leaving the store as it was before the call.

Store location: <data_dir>/pd_tracker.db
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Iterable, Optional

from loguru import logger

from .models import Entry


class TrackerError(Exception):
    """Base exception for tracker operations."""
    pass


class DuplicateKey(TrackerError):
    """Raised when inserting an entry whose ID is already stored."""
    pass


class StorageUnavailable(TrackerError):
    """Raised when the storage medium fails or a transaction is aborted."""
    pass


class EntryStore:
    """Durable store of entries keyed by ``id``."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path):
        """Open (or create) the store.

        Args:
            db_path: Path to the SQLite database file

        Raises:
            StorageUnavailable: If the database cannot be opened
        """
        self.db_path = db_path
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        with self._lock:
            self._ensure_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection. Caller holds the lock."""
        if self._connection is None:
            conn = None
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(
                    str(self.db_path),
                    check_same_thread=False,  # serialized by self._lock
                    isolation_level=None,     # explicit BEGIN/COMMIT below
                )
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA journal_mode = WAL")
                conn.execute("PRAGMA synchronous = FULL")
            except (sqlite3.Error, OSError) as e:
                if conn is not None:
                    conn.close()
                raise StorageUnavailable(f"Cannot open store at {self.db_path}: {e}") from e
            self._connection = conn
        return self._connection

    @contextmanager
    def _transaction(self, write: bool = True) -> Generator[sqlite3.Connection, None, None]:
        """Run a block as one transaction under the store lock.

        Any sqlite or value-binding error rolls the transaction back and
        surfaces as StorageUnavailable. TrackerError subclasses raised by
        the block also roll back and propagate unchanged.
        """
        with self._lock:
            conn = self._get_connection()
            try:
                conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
                yield conn
                conn.execute("COMMIT")
            except BaseException as e:
                if conn.in_transaction:
                    try:
                        conn.execute("ROLLBACK")
                    except sqlite3.Error:
                        logger.exception("Rollback failed")
                # OverflowError and UnicodeEncodeError come from binding values
                if isinstance(e, (sqlite3.Error, OverflowError, UnicodeEncodeError)):
                    raise StorageUnavailable(f"Store operation failed: {e}") from e
                raise

    def _ensure_schema(self) -> None:
        """Create the database schema if it doesn't exist."""
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
            )
            if cursor.fetchone() is None:
                self._init_schema(conn)
            else:
                row = conn.execute("SELECT version FROM schema_version").fetchone()
                if row is None or row[0] < self.SCHEMA_VERSION:
                    self._migrate_schema(conn, row[0] if row else 0)
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot initialize store at {self.db_path}: {e}") from e

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        """Initialize the database schema."""
        conn.executescript("""
            BEGIN;

            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
            INSERT INTO schema_version (version) VALUES (1);

            CREATE TABLE IF NOT EXISTS entries (
                id TEXT PRIMARY KEY,
                ts,                             -- epoch ms; no affinity so imported values round-trip
                tag TEXT NOT NULL DEFAULT '',
                text
            );

            CREATE INDEX IF NOT EXISTS idx_ts ON entries(ts);
            CREATE INDEX IF NOT EXISTS idx_tag ON entries(tag);
            CREATE INDEX IF NOT EXISTS idx_text ON entries(text);

            COMMIT;
        """)
        logger.debug(f"Initialized entry store schema at {self.db_path}")

    def _migrate_schema(self, conn: sqlite3.Connection, from_version: int) -> None:
        """Migrate schema from an older version."""
        # Only version 1 exists so far
        if from_version < 1:
            self._init_schema(conn)

    def close(self) -> None:
        """Checkpoint the WAL and close the database connection."""
        with self._lock:
            if self._connection is not None:
                try:
                    self._connection.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                    self._connection.execute("PRAGMA journal_mode = DELETE")
                except sqlite3.Error as e:
                    logger.warning(f"Could not checkpoint store on close: {e}")
                self._connection.close()
                self._connection = None

    # ========== Writes ==========

    def insert(self, entry: Entry) -> None:
        """Add a new entry.

        Raises:
            DuplicateKey: If an entry with the same id is already stored
            StorageUnavailable: If the write fails
        """
        with self._transaction() as conn:
            try:
                conn.execute(
                    "INSERT INTO entries (id, ts, tag, text) VALUES (?, ?, ?, ?)",
                    self._row_values(entry),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateKey(f"Entry already exists: {entry.id}") from e
        logger.debug(f"Inserted entry {entry.id}")

    def upsert(self, entry: Entry) -> None:
        """Insert an entry or replace the stored record with the same id."""
        with self._transaction() as conn:
            self._upsert_row(conn, entry)
        logger.debug(f"Upserted entry {entry.id}")

    def upsert_many(self, entries: Iterable[Entry]) -> int:
        """Upsert a batch of entries in a single transaction.

        Either every entry is written or, on failure, none is.

        Returns:
            Number of entries written
        """
        count = 0
        with self._transaction() as conn:
            for entry in entries:
                self._upsert_row(conn, entry)
                count += 1
        logger.debug(f"Upserted {count} entries in one batch")
        return count

    def delete(self, entry_id: str) -> bool:
        """Delete an entry. Deleting an unknown id is not an error.

        Returns:
            True if an entry was removed
        """
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
            removed = cursor.rowcount > 0
        logger.debug(f"Delete {entry_id}: {'removed' if removed else 'not found'}")
        return removed

    def clear_all(self) -> int:
        """Remove every entry.

        Returns:
            Number of entries removed
        """
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM entries")
            removed = cursor.rowcount
        logger.info(f"Cleared entry store ({removed} entries removed)")
        return removed

    # ========== Reads ==========

    def get_all(self) -> list[Entry]:
        """Return a snapshot of every stored entry (order unspecified)."""
        with self._transaction(write=False) as conn:
            rows = conn.execute("SELECT id, ts, tag, text FROM entries").fetchall()
        return [self._row_to_entry(row) for row in rows]

    def get(self, entry_id: str) -> Optional[Entry]:
        """Get a single entry by id, or None if not stored."""
        with self._transaction(write=False) as conn:
            row = conn.execute(
                "SELECT id, ts, tag, text FROM entries WHERE id = ?", (entry_id,)
            ).fetchone()
        return None if row is None else self._row_to_entry(row)

    def count(self) -> int:
        """Number of stored entries."""
        with self._transaction(write=False) as conn:
            return conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0]

    # ========== Helpers ==========

    def _upsert_row(self, conn: sqlite3.Connection, entry: Entry) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO entries (id, ts, tag, text) VALUES (?, ?, ?, ?)",
            self._row_values(entry),
        )

    @staticmethod
    def _row_values(entry: Entry) -> tuple[Any, ...]:
        return (entry.id, entry.ts, entry.tag if entry.tag is not None else "", entry.text)

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> Entry:
        return Entry(id=row["id"], ts=row["ts"], tag=row["tag"], text=row["text"])
