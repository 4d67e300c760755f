"""Per-entity summary statistics over price observations."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Mapping, Sequence

from ..models import PERCENTILES, MetricsRow, PriceObservation


def nearest_rank(sorted_values: Sequence[float], percentile: int) -> float:
    """Nearest-rank percentile: ``ceil(p/100 * n) - 1`` clamped to the list bounds."""

    if not sorted_values:
        raise ValueError("nearest_rank needs at least one value")
    index = -(-percentile * len(sorted_values) // 100) - 1
    index = max(0, min(index, len(sorted_values) - 1))
    return sorted_values[index]


def summarize(entity: str, values: Iterable[float]) -> MetricsRow:
    ordered = sorted(float(v) for v in values)
    if not ordered:
        return MetricsRow(
            entity=entity,
            sample_count=0,
            mean="",
            percentiles={p: "" for p in PERCENTILES},
        )
    mean = round(sum(ordered) / len(ordered), 2)
    ladder = {p: round(nearest_rank(ordered, p), 2) for p in PERCENTILES}
    return MetricsRow(entity=entity, sample_count=len(ordered), mean=mean, percentiles=ladder)


class ObservationAccumulator:
    """Entity-keyed collection of numeric observations for one run."""

    def __init__(self) -> None:
        self._values: dict[str, list[float]] = defaultdict(list)

    def register(self, entity: str) -> None:
        self._values.setdefault(entity, [])

    def add(self, observation: PriceObservation) -> None:
        self._values[observation.entity].append(observation.value)

    def add_value(self, entity: str, value: float | None) -> None:
        if value is None:
            return
        self.add(PriceObservation(entity=entity, value=value))

    def snapshot(self) -> Mapping[str, list[float]]:
        return dict(self._values)

    def __len__(self) -> int:
        return sum(len(values) for values in self._values.values())


def aggregate(observations: Mapping[str, Iterable[float]], entities: Iterable[str] = ()) -> list[MetricsRow]:
    """One metrics row per entity; entities without observations still get a row."""

    names: list[str] = list(dict.fromkeys([*entities, *observations.keys()]))
    return [summarize(name, observations.get(name, ())) for name in names]


__all__ = ["ObservationAccumulator", "aggregate", "nearest_rank", "summarize"]
