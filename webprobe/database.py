"""SQLite-backed result store.

The store is append/delete-only: records are inserted in batches and removed
whole, never updated. Row ids give insertion order, which breaks timestamp
ties when finding the most recent record.
"""

import sqlite3
import threading
from collections.abc import Callable, Iterable
from pathlib import Path

from .models import CheckResult
from .records import RECORD_COLUMNS, record_to_row, row_to_record


class DatabaseError(Exception):
    """Raised when a database operation fails."""

    pass


# SQLite allows concurrent reads but only one writer at a time.
# Appends, deletes and snapshot reads all go through this lock.
_db_lock = threading.Lock()

_COLUMN_LIST = ", ".join(RECORD_COLUMNS)
_PLACEHOLDERS = ", ".join("?" for _ in RECORD_COLUMNS)

# Deletes are issued in chunks to stay under SQLite's bound-parameter limit.
_DELETE_CHUNK = 500


def init_db(db_path: str) -> sqlite3.Connection:
    """Initialize the database and create tables if they don't exist.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        Database connection with WAL mode enabled.

    Raises:
        DatabaseError: If database initialization fails.
    """
    try:
        parent_dir = Path(db_path).parent
        if not parent_dir.exists():
            parent_dir.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row

        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")

        conn.execute("""
            CREATE TABLE IF NOT EXISTS checks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                url TEXT NOT NULL,
                ok INTEGER NOT NULL,
                status INTEGER,
                final_url TEXT,
                response_time_ms INTEGER,
                payload_bytes INTEGER,
                title TEXT,
                meta_description TEXT,
                keyword TEXT,
                keyword_present INTEGER,
                dns_a TEXT NOT NULL DEFAULT '',
                dns_aaaa TEXT NOT NULL DEFAULT '',
                ssl_days_remaining INTEGER,
                error TEXT
            )
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_checks_url
            ON checks(url)
        """)

        conn.commit()
        return conn

    except sqlite3.Error as e:
        raise DatabaseError(f"Failed to initialize database: {e}")
    except OSError as e:
        raise DatabaseError(f"Failed to create database directory: {e}")


class ResultStore:
    """Append/delete-only store of CheckResult records.

    Created once at startup and passed to whatever needs it.

    Example:
        store = ResultStore.open(config.database.path)
        store.append(records)
        snapshot = store.read_all()
    """

    def __init__(self, conn: sqlite3.Connection, location: str | None = None) -> None:
        """Wrap an initialized connection.

        Args:
            conn: Connection returned by init_db().
            location: Human-readable store location (used in digests).
        """
        self._conn = conn
        self.location = location

    @classmethod
    def open(cls, db_path: str) -> "ResultStore":
        """Initialize the database at ``db_path`` and return a store for it."""
        return cls(init_db(db_path), location=db_path)

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    def append(self, batch: Iterable[CheckResult]) -> int:
        """Append a batch of records in a single transaction.

        Either every record of the batch is stored or none is.

        Returns:
            Number of records appended.

        Raises:
            DatabaseError: If the insert fails.
        """
        rows = [record_to_row(record) for record in batch]
        if not rows:
            return 0

        try:
            with _db_lock:
                with self._conn:
                    self._conn.executemany(
                        f"INSERT INTO checks ({_COLUMN_LIST}) VALUES ({_PLACEHOLDERS})",
                        rows,
                    )
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to append check results: {e}")

        return len(rows)

    def _read_rows(self) -> list[tuple[int, CheckResult]]:
        try:
            with _db_lock:
                rows = self._conn.execute(f"SELECT id, {_COLUMN_LIST} FROM checks ORDER BY id").fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read check results: {e}")

        try:
            return [(row[0], row_to_record(tuple(row)[1:])) for row in rows]
        except ValueError as e:
            raise DatabaseError(f"Corrupt check result row: {e}")

    def read_all(self) -> list[CheckResult]:
        """Return every stored record in insertion order.

        The rows are read in one query under the store lock, so a batch being
        appended concurrently is either fully visible or not at all.

        Raises:
            DatabaseError: If the query fails.
        """
        return [record for _, record in self._read_rows()]

    def delete(self, predicate: Callable[[CheckResult], bool]) -> int:
        """Delete every record for which ``predicate`` returns True.

        Returns:
            Number of deleted records.

        Raises:
            DatabaseError: If the deletion fails.
        """
        ids = [row_id for row_id, record in self._read_rows() if predicate(record)]
        if not ids:
            return 0

        try:
            with _db_lock:
                with self._conn:
                    for start in range(0, len(ids), _DELETE_CHUNK):
                        chunk = ids[start : start + _DELETE_CHUNK]
                        self._conn.execute(
                            f"DELETE FROM checks WHERE id IN ({', '.join('?' for _ in chunk)})",
                            chunk,
                        )
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to delete check results: {e}")

        return len(ids)

    def delete_all(self) -> int:
        """Delete all records.

        Returns:
            Number of deleted records.

        Raises:
            DatabaseError: If the deletion fails.
        """
        try:
            with _db_lock:
                with self._conn:
                    cursor = self._conn.execute("DELETE FROM checks")
                    return cursor.rowcount
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to delete all check results: {e}")

    def count(self) -> int:
        """Return the number of stored records."""
        try:
            with _db_lock:
                return self._conn.execute("SELECT COUNT(*) FROM checks").fetchone()[0]
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to count check results: {e}")
