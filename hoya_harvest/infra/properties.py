"""Persistent string key-value store backed by the workbook database."""

from __future__ import annotations

import sqlite3
from threading import Lock


class PropertyStore:
    """get/set/delete single string values."""

    def __init__(self, conn: sqlite3.Connection, lock: Lock | None = None) -> None:
        self._conn = conn
        self._lock = lock or Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            cur = self._conn.execute("SELECT value FROM properties WHERE key = ?", (key,))
            row = cur.fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO properties(key, value) VALUES (?, ?)", (key, value)
            )
            self._conn.commit()

    def delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM properties WHERE key = ?", (key,))
            self._conn.commit()

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT key FROM properties WHERE key LIKE ? ORDER BY key", (f"{prefix}%",)
            )
            return [row["key"] for row in cur.fetchall()]


__all__ = ["PropertyStore"]
