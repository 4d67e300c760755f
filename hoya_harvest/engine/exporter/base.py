"""Exporter Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Sequence


class BaseExporter(ABC):
    """Uniform exporter contract for sheet rows."""

    @abstractmethod
    def export(self, record: dict) -> None:
        """Persist a single record."""

    def export_many(self, records: Iterable[dict]) -> None:
        for record in records:
            self.export(record)

    def export_rows(self, header: Sequence[str], rows: Iterable[Sequence[str]]) -> int:
        count = 0
        for values in rows:
            padded = list(values) + [""] * (len(header) - len(values))
            self.export(dict(zip(header, padded)))
            count += 1
        return count

    @abstractmethod
    def flush(self) -> None:
        """Flush buffered data to destination."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""


__all__ = ["BaseExporter"]
