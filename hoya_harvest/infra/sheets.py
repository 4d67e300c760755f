"""Row-addressed tables stored inside the workbook database.

Rows are 1-based like a spreadsheet; header rows live at the top of each
sheet and data rows follow. Every row is a list of strings.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from threading import Lock
from typing import Iterable, Sequence


@dataclass(frozen=True, slots=True)
class SheetRow:
    index: int
    values: list[str]


def _normalise(values: Sequence[object]) -> list[str]:
    return ["" if value is None else str(value) for value in values]


class SheetStore:
    """Append/overwrite/read access to one named sheet."""

    def __init__(self, conn: sqlite3.Connection, name: str, lock: Lock | None = None) -> None:
        self._conn = conn
        self.name = name
        self._lock = lock or Lock()

    def clear(self) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM sheet_rows WHERE sheet = ?", (self.name,))
            self._conn.commit()

    def last_row(self) -> int:
        with self._lock:
            cur = self._conn.execute(
                "SELECT MAX(row_index) FROM sheet_rows WHERE sheet = ?", (self.name,)
            )
            value = cur.fetchone()[0]
        return int(value or 0)

    def write_row(self, index: int, values: Sequence[object]) -> None:
        if index < 1:
            raise ValueError("Row index must be >= 1")
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO sheet_rows(sheet, row_index, payload) VALUES (?, ?, ?)",
                (self.name, index, json.dumps(_normalise(values), ensure_ascii=False)),
            )
            self._conn.commit()

    def append_row(self, values: Sequence[object]) -> int:
        index = self.last_row() + 1
        self.write_row(index, values)
        return index

    def append_rows(self, rows: Iterable[Sequence[object]]) -> int:
        start = self.last_row() + 1
        payload = [
            (self.name, start + offset, json.dumps(_normalise(values), ensure_ascii=False))
            for offset, values in enumerate(rows)
        ]
        if not payload:
            return 0
        with self._lock:
            self._conn.executemany(
                "INSERT OR REPLACE INTO sheet_rows(sheet, row_index, payload) VALUES (?, ?, ?)",
                payload,
            )
            self._conn.commit()
        return len(payload)

    def row(self, index: int) -> list[str] | None:
        with self._lock:
            cur = self._conn.execute(
                "SELECT payload FROM sheet_rows WHERE sheet = ? AND row_index = ?",
                (self.name, index),
            )
            found = cur.fetchone()
        return json.loads(found["payload"]) if found else None

    def rows(self, start: int = 1) -> list[SheetRow]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT row_index, payload FROM sheet_rows "
                "WHERE sheet = ? AND row_index >= ? ORDER BY row_index",
                (self.name, start),
            )
            fetched = cur.fetchall()
        return [SheetRow(index=row["row_index"], values=json.loads(row["payload"])) for row in fetched]

    def values(self) -> list[list[str]]:
        return [row.values for row in self.rows()]

    def rewrite(self, rows: Iterable[Sequence[object]]) -> None:
        """Replace the whole sheet with ``rows`` placed at 1..n."""

        payload = [
            (self.name, index, json.dumps(_normalise(values), ensure_ascii=False))
            for index, values in enumerate(rows, start=1)
        ]
        with self._lock:
            self._conn.execute("DELETE FROM sheet_rows WHERE sheet = ?", (self.name,))
            self._conn.executemany(
                "INSERT INTO sheet_rows(sheet, row_index, payload) VALUES (?, ?, ?)",
                payload,
            )
            self._conn.commit()

    def update_cell(self, index: int, column: int, value: object) -> None:
        """Set a 1-based ``column`` of row ``index``, padding the row as needed."""

        current = self.row(index) or []
        while len(current) < column:
            current.append("")
        current[column - 1] = "" if value is None else str(value)
        self.write_row(index, current)

    def list_names(self) -> list[str]:
        with self._lock:
            cur = self._conn.execute("SELECT DISTINCT sheet FROM sheet_rows ORDER BY sheet")
            return [row["sheet"] for row in cur.fetchall()]


__all__ = ["SheetRow", "SheetStore"]
