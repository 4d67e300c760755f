"""File based exporter supporting JSON lines and CSV."""

from __future__ import annotations

import csv
import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .base import BaseExporter


class FileExporter(BaseExporter):
    """Write records to local files."""

    def __init__(self, output_dir: Path, sheet_name: str, fmt: str, run_tag: str | None = None) -> None:
        if fmt not in ("json", "csv"):
            raise ValueError(f"Unsupported export format: {fmt}")
        self.output_dir = output_dir
        self.sheet_name = sheet_name
        self.format = fmt
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.run_tag = run_tag or datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        slug = re.sub(r"[^0-9A-Za-z_-]+", "_", sheet_name.strip()) or "sheet"
        filename = f"{slug}-{self.run_tag}.{self._extension}"
        self.path = self.output_dir / filename
        self._file = self.path.open("w", encoding="utf-8", newline="")
        self._csv_writer: Optional[csv.DictWriter] = None

    @property
    def _extension(self) -> str:
        return "jsonl" if self.format == "json" else "csv"

    def export(self, record: dict) -> None:
        if self.format == "json":
            json.dump(record, self._file, ensure_ascii=False)
            self._file.write("\n")
            return
        if not self._csv_writer:
            # first record fixes the column order
            self._csv_writer = csv.DictWriter(self._file, fieldnames=list(record.keys()))
            self._csv_writer.writeheader()
        self._csv_writer.writerow(record)

    def flush(self) -> None:
        self._file.flush()

    def close(self) -> None:
        self._file.close()


__all__ = ["FileExporter"]
