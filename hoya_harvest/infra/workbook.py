"""Single-file workbook bundling sheets, properties and the response cache."""

from __future__ import annotations

from pathlib import Path
from threading import Lock

from .cache import SQLiteCache
from .properties import PropertyStore
from .sheets import SheetStore
from .storage import SQLiteManager


class Workbook:
    """Hand out stores that share one connection and one lock."""

    def __init__(self, manager: SQLiteManager, path: Path) -> None:
        self.manager = manager
        self.path = path
        self._conn = manager.connect(path)
        self._lock = Lock()
        self.properties = PropertyStore(self._conn, self._lock)
        self.cache = SQLiteCache(self._conn, self._lock)

    def sheet(self, name: str) -> SheetStore:
        return SheetStore(self._conn, name, self._lock)

    def sheet_names(self) -> list[str]:
        return self.sheet("").list_names()


__all__ = ["Workbook"]
