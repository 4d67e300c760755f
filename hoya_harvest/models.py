"""Data model shared by the collection run and the trend harvest."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from typing import Any

NO_DATA = "No data"


def sanitize_name(raw: str, max_length: int = 100) -> str:
    """Keep alphanumerics and spaces, collapse whitespace, trim and cap."""

    kept = "".join(ch for ch in str(raw) if ch.isalnum() or ch.isspace())
    collapsed = " ".join(kept.split())
    return collapsed[:max_length].strip()


@dataclass(frozen=True, slots=True)
class SearchTarget:
    """One entity to search for, tied to its row in the entity sheet."""

    name: str
    row_index: int
    identifier: str = ""

    @classmethod
    def from_raw(
        cls, raw_name: str, row_index: int, identifier: str = "", max_length: int = 100
    ) -> "SearchTarget":
        return cls(
            name=sanitize_name(raw_name, max_length),
            row_index=row_index,
            identifier=str(identifier or "").strip(),
        )


@dataclass(frozen=True)
class ResultRecord:
    """Flattened listing/ad/result row; field order is the sheet header."""

    source_type: str
    entity: str
    query: str | None = None
    position: int | None = None
    title: str | None = None
    price_raw: str | None = None
    price: float | None = None
    old_price_raw: str | None = None
    old_price: float | None = None
    link: str | None = None
    product_id: str | None = None
    product_link: str | None = None
    product_api_link: str | None = None
    store: str | None = None
    store_rating: float | None = None
    store_reviews: int | None = None
    delivery: str | None = None
    discount: str | None = None
    tag: str | None = None
    comparisons: str | None = None
    comparison_link: str | None = None
    snippet: str | None = None
    extensions: str | None = None
    thumbnail: str | None = None
    image: str | None = None
    additional_options: str | None = None
    collected_at: str | None = None

    def to_row(self) -> list[str]:
        return ["" if value is None else str(value) for value in asdict(self).values()]


RESULT_HEADER: list[str] = [f.name for f in fields(ResultRecord)]

PERCENTILES: tuple[int, ...] = tuple(range(0, 101, 5))

METRICS_HEADER: list[str] = ["entity", "sample_count", "mean"] + [f"p{p}" for p in PERCENTILES]

ENTITY_HEADER: list[str] = ["name", "identifier", "status"]


@dataclass(frozen=True, slots=True)
class PriceObservation:
    entity: str
    value: float


@dataclass(frozen=True)
class MetricsRow:
    entity: str
    sample_count: int
    mean: float | str
    percentiles: dict[int, float | str] = field(default_factory=dict)

    def to_row(self) -> list[str]:
        ladder = [self.percentiles.get(p, "") for p in PERCENTILES]
        return [self.entity, str(self.sample_count), _fmt(self.mean)] + [_fmt(v) for v in ladder]


def _fmt(value: float | str) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


@dataclass(frozen=True, slots=True)
class BatchCheckpoint:
    """Resume position of a trend phase."""

    phase: str
    sheet: str
    next_row: int

    def dumps(self) -> str:
        return json.dumps({"phase": self.phase, "sheet": self.sheet, "next_row": self.next_row})

    @classmethod
    def loads(cls, raw: str) -> "BatchCheckpoint":
        data: dict[str, Any] = json.loads(raw)
        return cls(phase=str(data["phase"]), sheet=str(data["sheet"]), next_row=int(data["next_row"]))


@dataclass(frozen=True, slots=True)
class TrendSeries:
    name: str
    identifier: str
    values: tuple[float, ...]

    def to_row(self) -> list[str]:
        return [self.name, self.identifier] + [_number(v) for v in self.values]


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


__all__ = [
    "BatchCheckpoint",
    "ENTITY_HEADER",
    "METRICS_HEADER",
    "MetricsRow",
    "NO_DATA",
    "PERCENTILES",
    "PriceObservation",
    "RESULT_HEADER",
    "ResultRecord",
    "SearchTarget",
    "TrendSeries",
    "sanitize_name",
]
