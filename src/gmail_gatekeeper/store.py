"""SQLite key/value store for label ids, the sync cursor and settings."""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any

from gmail_gatekeeper.constants import STATE_DB_PATH

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    namespace TEXT NOT NULL,
    key TEXT NOT NULL,
    value_json TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (namespace, key)
);
"""


class KeyValueStore:
    """Persistent key/value store, one namespace per mailbox account.

    Values are stored as JSON, so anything ``json.dumps`` accepts round-trips.
    A single connection is shared between threads and guarded by a lock.
    """

    def __init__(self, db_path: Path | str | None = None, namespace: str = "me") -> None:
        self.namespace = namespace
        if str(db_path) == ":memory:":
            self.db_path = None
            self._conn = sqlite3.connect(":memory:", check_same_thread=False)
        else:
            self.db_path = Path(db_path or STATE_DB_PATH)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._create_tables()

    def _create_tables(self) -> None:
        with self._lock:
            self._conn.executescript(_CREATE_TABLES_SQL)

    # --- public API ---

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            row = self._conn.execute(
                "SELECT value_json FROM kv WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            ).fetchone()
        if row is None:
            return default
        return json.loads(row["value_json"])

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO kv (namespace, key, value_json) VALUES (?, ?, ?) "
                "ON CONFLICT(namespace, key) DO UPDATE SET "
                "value_json = excluded.value_json, updated_at = CURRENT_TIMESTAMP",
                (self.namespace, key, payload),
            )

    def delete(self, key: str) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "DELETE FROM kv WHERE namespace = ? AND key = ?", (self.namespace, key)
            )

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT key FROM kv WHERE namespace = ? AND substr(key, 1, ?) = ? ORDER BY key",
                (self.namespace, len(prefix), prefix),
            ).fetchall()
        return [r["key"] for r in rows]

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``; returns the number removed."""
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "DELETE FROM kv WHERE namespace = ? AND substr(key, 1, ?) = ?",
                (self.namespace, len(prefix), prefix),
            )
        return cursor.rowcount

    def clear(self) -> None:
        """Drop every key of this namespace."""
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM kv WHERE namespace = ?", (self.namespace,))

    def get_info(self) -> dict:
        """Return store statistics."""
        file_size = self.db_path.stat().st_size if self.db_path and self.db_path.exists() else 0
        with self._lock:
            key_count = self._conn.execute(
                "SELECT COUNT(*) AS c FROM kv WHERE namespace = ?", (self.namespace,)
            ).fetchone()["c"]
            namespaces = self._conn.execute(
                "SELECT COUNT(DISTINCT namespace) AS c FROM kv"
            ).fetchone()["c"]
        return {
            "db_file_size": file_size,
            "namespace": self.namespace,
            "key_count": key_count,
            "namespace_count": namespaces,
        }

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- context manager ---

    def __enter__(self) -> KeyValueStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()
