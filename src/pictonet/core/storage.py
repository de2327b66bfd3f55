"""Key-value persistence for rows, configuration and the vector library.

The pipeline only needs ``get``/``set``/``delete`` on string values. Two
implementations are provided: an SQLite-backed store for the CLI and an
in-memory store for tests and ephemeral sessions. Both can enforce a
per-value size quota, mimicking browser storage limits, and report any
write failure as :class:`PersistenceWarning`.
"""

import sqlite3
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable
import threading

from pictonet.contracts.failure import PersistenceWarning

__all__ = ['KeyValueStorage', 'SQLiteKeyValueStorage', 'MemoryKeyValueStorage']

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStorage(Protocol):
    """Persistence collaborator contract."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


def _check_quota(key: str, value: str, max_value_bytes: Optional[int]) -> None:
    if max_value_bytes is None:
        return
    size = len(value.encode("utf-8"))
    if size > max_value_bytes:
        raise PersistenceWarning(
            f"Value for '{key}' is {size} bytes, exceeds quota of {max_value_bytes} bytes"
        )


class SQLiteKeyValueStorage:
    """String key-value store in a single SQLite table.

    **Database Schema:**

    SQLite table `kv_store`:

    - key: Storage key (e.g., pictonet_v19_storage)
    - value: Serialized JSON text
    - updated_at: ISO timestamp of the last write

    **Typical Usage:**

    Handed to the row store and the vector library; both serialize their
    whole state under one key::

        storage = SQLiteKeyValueStorage("studio.db")
        store = RowStore(storage)
        ...
        storage.close()
    """

    def __init__(self, db_path: Path | str, max_value_bytes: Optional[int] = None):
        """Initialize storage.

        Parameters
        ----------
        db_path : Path or str
            Path to SQLite database file. Created if it doesn't exist.
        max_value_bytes : int, optional
            Reject values larger than this many UTF-8 bytes.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_value_bytes = max_value_bytes

        self._conn = None
        self._lock = threading.Lock()

        self._init_database()
        logger.info("Key-value storage initialized: %s", self.db_path)

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_database(self):
        """Create database schema if it doesn't exist."""
        conn = self._get_connection()

        with self._lock:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        conn = self._get_connection()

        with self._lock:
            cursor = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value.

        Raises
        ------
        PersistenceWarning
            If the value exceeds the quota or SQLite rejects the write.
        """
        _check_quota(key, value, self.max_value_bytes)
        conn = self._get_connection()

        with self._lock:
            try:
                conn.execute("""
                    INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                                   updated_at = excluded.updated_at
                """, (key, value, datetime.now(timezone.utc).isoformat()))
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise PersistenceWarning(f"Could not write '{key}': {e}") from e

        logger.debug("Stored %s (%d chars)", key, len(value))

    def delete(self, key: str) -> None:
        conn = self._get_connection()

        with self._lock:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()

    def keys(self) -> list[str]:
        conn = self._get_connection()

        with self._lock:
            cursor = conn.execute("SELECT key FROM kv_store ORDER BY key")
            return [row["key"] for row in cursor.fetchall()]

    def close(self):
        """Close database connection. Safe to call multiple times."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


class MemoryKeyValueStorage:
    """Dict-backed storage with the same contract as the SQLite store."""

    def __init__(self, initial: Optional[dict[str, str]] = None,
                 max_value_bytes: Optional[int] = None):
        self._data: dict[str, str] = dict(initial or {})
        self.max_value_bytes = max_value_bytes

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        _check_quota(key, value, self.max_value_bytes)
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)
