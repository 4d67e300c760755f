from __future__ import annotations

import pytest

from hoya_harvest.engine.stats import ObservationAccumulator, aggregate, nearest_rank, summarize
from hoya_harvest.models import METRICS_HEADER


def test_four_value_ladder() -> None:
    metrics = summarize("Hoya kerrii", [40, 10, 30, 20])
    assert metrics.sample_count == 4
    assert metrics.mean == 25.0
    assert metrics.percentiles[0] == 10.0
    assert metrics.percentiles[25] == 10.0
    assert metrics.percentiles[50] == 20.0
    assert metrics.percentiles[75] == 30.0
    assert metrics.percentiles[100] == 40.0
    row = metrics.to_row()
    assert len(row) == len(METRICS_HEADER) == 24
    assert row[:4] == ["Hoya kerrii", "4", "25.00", "10.00"]


def test_empty_entity_still_gets_a_row() -> None:
    row = summarize("Hoya sp. Aceh", []).to_row()
    assert row[0] == "Hoya sp. Aceh"
    assert row[1] == "0"
    assert row[2:] == [""] * 22


def test_nearest_rank_clamps_and_rejects_empty() -> None:
    assert nearest_rank([5.0], 0) == 5.0
    assert nearest_rank([1.0, 2.0, 3.0], 100) == 3.0
    with pytest.raises(ValueError):
        nearest_rank([], 50)


def test_rounding_happens_at_summary() -> None:
    metrics = summarize("x", [1.005, 2.0, 3.333])
    assert metrics.mean == round((1.005 + 2.0 + 3.333) / 3, 2)
    assert metrics.percentiles[100] == 3.33


def test_accumulator_skips_missing_prices_and_keeps_registered_entities() -> None:
    accumulator = ObservationAccumulator()
    accumulator.register("Hoya kerrii")
    accumulator.register("Hoya linearis")
    accumulator.add_value("Hoya kerrii", 12.5)
    accumulator.add_value("Hoya kerrii", None)
    assert len(accumulator) == 1

    rows = aggregate(accumulator.snapshot(), ["Hoya kerrii", "Hoya linearis"])
    assert [r.entity for r in rows] == ["Hoya kerrii", "Hoya linearis"]
    assert rows[1].sample_count == 0
