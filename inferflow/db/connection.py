"""SQLite key-value store with WAL mode and schema initialization.

Single writer, synchronous. Two processes writing the same file can still
overwrite each other's session index; there is no merge.
"""

import sqlite3
from datetime import UTC, datetime

from inferflow.db.schema import SCHEMA_SQL


class Database:
    """Thin wrapper around sqlite3 exposing get/set/delete on text values.

    Every sqlite3 error is re-raised as PersistenceError.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection

    @classmethod
    def connect(cls, path: str = "inferflow.db") -> "Database":
        """Create a connection with WAL mode and schema init."""
        try:
            conn = sqlite3.connect(path)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
            db = cls(conn)
            db._ensure_schema()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {path!r}: {e}") from e
        return db

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist. Idempotent."""
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    def get(self, key: str) -> str | None:
        """Stored text for key, or None if absent."""
        try:
            row = self._conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Read of {key!r} failed: {e}") from e
        return row[0] if row is not None else None

    def set(self, key: str, value: str) -> None:
        """Insert or replace the value stored under key."""
        now = datetime.now(UTC).isoformat()
        try:
            self._conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, value, now),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Write of {key!r} failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            self._conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Delete of {key!r} failed: {e}") from e

    def keys(self) -> list[str]:
        try:
            rows = self._conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Listing keys failed: {e}") from e
        return [row[0] for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()


class PersistenceError(Exception):
    """The underlying store failed to read or write."""
