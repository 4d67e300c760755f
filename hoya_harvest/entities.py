"""Entity sheet helpers: import, load targets, annotate rows."""

from __future__ import annotations

import csv
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from .infra.sheets import SheetStore
from .models import ENTITY_HEADER, SearchTarget

STATUS_COLUMN = ENTITY_HEADER.index("status") + 1


def _read_source(path: Path) -> Iterable[tuple[str, str]]:
    text = path.read_text(encoding="utf-8-sig")
    if path.suffix.lower() == ".csv":
        for row in csv.reader(text.splitlines()):
            if not row or not row[0].strip():
                continue
            if row[0].strip().lower() == "name":
                continue
            yield row[0].strip(), (row[1].strip() if len(row) > 1 else "")
        return
    for line in text.splitlines():
        if line.strip() and not line.lstrip().startswith("#"):
            yield line.strip(), ""


def import_entities(sheet: SheetStore, path: Path, header_rows: int) -> int:
    """Replace the entity sheet with the names listed in ``path``."""

    header: list[list[str]] = [list(ENTITY_HEADER)]
    stamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
    while len(header) < header_rows:
        header.append([f"imported {stamp}", path.name, ""])
    entries = [[name, identifier, ""] for name, identifier in _read_source(path)]
    sheet.rewrite(header + entries)
    return len(entries)


def load_targets(
    sheet: SheetStore,
    first_row: int,
    max_name_length: int = 100,
    limit: int | None = None,
) -> list[SearchTarget]:
    targets: list[SearchTarget] = []
    for row in sheet.rows(start=first_row):
        raw_name = row.values[0] if row.values else ""
        identifier = row.values[1] if len(row.values) > 1 else ""
        target = SearchTarget.from_raw(raw_name, row.index, identifier, max_name_length)
        if not target.name:
            continue
        targets.append(target)
        if limit is not None and len(targets) >= limit:
            break
    return targets


def annotate(sheet: SheetStore, target: SearchTarget, status: str) -> None:
    sheet.update_cell(target.row_index, STATUS_COLUMN, status)


__all__ = ["STATUS_COLUMN", "annotate", "import_entities", "load_targets"]
