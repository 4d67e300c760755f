"""TTL cache stores for raw API responses."""

from __future__ import annotations

import sqlite3
import time
from threading import Lock
from typing import Callable, Dict, Optional, Protocol


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, value: str, ttl: int) -> None: ...


class SQLiteCache:
    """Cache entries persisted next to the sheets so they survive invocations."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        lock: Lock | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._conn = conn
        self._lock = lock or Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[str]:
        now = self._clock()
        with self._lock:
            cur = self._conn.execute(
                "SELECT value, expires_at FROM cache_entries WHERE key = ?", (key,)
            )
            row = cur.fetchone()
            if row is None:
                return None
            if row["expires_at"] < now:
                self._conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                self._conn.commit()
                return None
        return row["value"]

    def put(self, key: str, value: str, ttl: int) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO cache_entries(key, value, expires_at) VALUES (?, ?, ?)",
                (key, value, self._clock() + ttl),
            )
            self._conn.commit()

    def purge(self, expired_only: bool = False) -> int:
        with self._lock:
            if expired_only:
                cur = self._conn.execute(
                    "DELETE FROM cache_entries WHERE expires_at < ?", (self._clock(),)
                )
            else:
                cur = self._conn.execute("DELETE FROM cache_entries")
            self._conn.commit()
            return cur.rowcount


class InMemoryCache:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._store: Dict[str, tuple[float, str]] = {}
        self._lock = Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._store.get(key)
            if not value:
                return None
            expires_at, payload = value
            if expires_at < self._clock():
                self._store.pop(key, None)
                return None
            return payload

    def put(self, key: str, value: str, ttl: int) -> None:
        with self._lock:
            self._store[key] = (self._clock() + ttl, value)

    def purge(self, expired_only: bool = False) -> int:
        with self._lock:
            if not expired_only:
                count = len(self._store)
                self._store.clear()
                return count
            now = self._clock()
            stale = [key for key, (expires_at, _) in self._store.items() if expires_at < now]
            for key in stale:
                del self._store[key]
            return len(stale)


__all__ = ["CacheBackend", "InMemoryCache", "SQLiteCache"]
