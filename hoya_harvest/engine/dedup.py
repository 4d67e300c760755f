"""Deduplication pass over the accumulated result sheet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from ..infra.sheets import SheetStore
from ..models import RESULT_HEADER

_PRODUCT_ID = RESULT_HEADER.index("product_id")
_LINK = RESULT_HEADER.index("link")
_TITLE = RESULT_HEADER.index("title")


@dataclass
class DeduplicationResult:
    rows: list[list[str]] = field(default_factory=list)
    dropped: int = 0

    @property
    def kept(self) -> int:
        return len(self.rows)


def _cell(values: Sequence[str], index: int) -> str:
    return values[index].strip() if index < len(values) and values[index] else ""


def row_key(values: Sequence[str]) -> str:
    """Identity of a result row: product identifier, else link plus title."""

    product_id = _cell(values, _PRODUCT_ID)
    if product_id:
        return f"pid:{product_id}"
    return f"lt:{_cell(values, _LINK)}|{_cell(values, _TITLE)}"


class Deduplicator:
    """Drop later rows sharing an identity key; the first occurrence wins."""

    def __init__(self, header_rows: int = 1) -> None:
        self.header_rows = header_rows

    def deduplicate(self, rows: Sequence[Sequence[str]]) -> DeduplicationResult:
        result = DeduplicationResult()
        seen: set[str] = set()
        for position, values in enumerate(rows):
            if position < self.header_rows:
                result.rows.append(list(values))
                continue
            key = row_key(values)
            if key in seen:
                result.dropped += 1
                continue
            seen.add(key)
            result.rows.append(list(values))
        return result

    def dedupe_sheet(self, sheet: SheetStore) -> DeduplicationResult:
        """Read the whole sheet, drop duplicates and write it back in place."""

        result = self.deduplicate(sheet.values())
        if result.dropped:
            sheet.rewrite(result.rows)
        return result


__all__ = ["DeduplicationResult", "Deduplicator", "row_key"]
