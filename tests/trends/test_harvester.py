from __future__ import annotations

from datetime import date
from typing import Callable

import httpx
import pytest

from conftest import json_response, query_of, seed_entities
from hoya_harvest.models import NO_DATA, BatchCheckpoint
from hoya_harvest.trends import ACTIVE_PHASE_KEY, TrendHarvester, cursor_key, timeline_values, weekly_dates

TODAY = date(2024, 6, 30)
NAMES = ["Hoya kerrii", "Hoya broken", "Hoya linearis", "Hoya empty", ("Hoya obovata", "/m/0obo")]


class FakeTimer:
    def __init__(self) -> None:
        self.scheduled: list[tuple[str, Callable[[], object], float]] = []
        self.cancelled = 0

    def schedule_once(self, handler: str, callback: Callable[[], object], delay_seconds: float) -> str:
        self.scheduled.append((handler, callback, delay_seconds))
        return f"{handler}::{len(self.scheduled)}"

    def pending(self, handler: str) -> list[dict]:
        return [{"id": str(n), "name": name} for n, (name, _, _) in enumerate(self.scheduled) if name == handler]

    def cancel(self, handler: str) -> int:
        removed = len(self.pending(handler))
        self.scheduled = [entry for entry in self.scheduled if entry[0] != handler]
        self.cancelled += removed
        return removed


def trends_api(request: httpx.Request) -> httpx.Response:
    query = query_of(request)["q"]
    if "broken" in query:
        return json_response({}, status_code=503)
    if "empty" in query:
        return json_response({"interest_over_time": {"timeline_data": []}})
    timeline = [
        {"date": f"week {n}", "values": [{"query": query, "value": str(n), "extracted_value": n}]}
        for n in range(1, 61)
    ]
    timeline[-1]["values"][0] = {"query": query, "value": "<1"}
    return json_response({"interest_over_time": {"timeline_data": timeline}})


@pytest.fixture
def harvester_factory(run_context, workbook):
    seed_entities(workbook, NAMES)

    def _factory(timer: FakeTimer | None = None, sleep=lambda _: None, config=None) -> TrendHarvester:
        context = run_context(trends_api, config=config)
        return TrendHarvester(context, timer=timer, today=lambda: TODAY, sleep=sleep)

    return _factory


def test_weekly_dates_are_ascending_and_unique() -> None:
    assert weekly_dates(TODAY, 3) == ["2024-06-16", "2024-06-23", "2024-06-30"]
    assert len(weekly_dates(TODAY, 52)) == 52


def test_timeline_values_skips_unparseable_points() -> None:
    payload = {
        "interest_over_time": {
            "timeline_data": [
                {"values": [{"value": "5", "extracted_value": 5}]},
                {"values": []},
                {"values": [{"value": "n/a"}]},
                {"values": [{"value": "<1"}]},
            ]
        }
    }
    assert timeline_values(payload) == [5.0, 0.0]
    assert timeline_values({}) == []


def test_first_invocation_starts_phase_and_persists_cursor(harvester_factory, workbook) -> None:
    timer = FakeTimer()
    harvester = harvester_factory(timer)

    result = harvester.invoke()

    assert result.remaining is True
    assert result.phase == "90d"
    assert [(b.processed, b.next_row, b.phase_complete) for b in result.batches] == [(2, 5, False)]
    stored = BatchCheckpoint.loads(workbook.properties.get(cursor_key("90d")))
    assert stored == BatchCheckpoint(phase="90d", sheet="trends_90d", next_row=5)
    assert workbook.properties.get(ACTIVE_PHASE_KEY) == "90d"
    assert len(timer.scheduled) == 1
    assert timer.scheduled[0][0] == "trends.invoke"
    assert timer.scheduled[0][2] == 60

    sheet = workbook.sheet("trends_90d")
    header = sheet.row(1)
    assert header[:2] == ["name", "identifier"]
    assert header[2:] == weekly_dates(TODAY, 13)
    assert sheet.row(2)[:2] == ["window", "90 days"]
    assert sheet.row(3) == ["Hoya kerrii", ""] + [str(n) for n in range(48, 60)] + ["0"]
    assert sheet.row(4) == ["Hoya broken", "", NO_DATA]


def test_resume_continues_from_cursor_and_cancels_pending_timer(harvester_factory, workbook) -> None:
    timer = FakeTimer()
    harvester = harvester_factory(timer)
    harvester.invoke()

    result = harvester.invoke()

    assert timer.cancelled == 1
    assert result.batches[0].next_row == 7
    assert len(timer.scheduled) == 1
    sheet = workbook.sheet("trends_90d")
    assert sheet.row(5)[0] == "Hoya linearis"
    assert sheet.row(6) == ["Hoya empty", "", NO_DATA]
    assert sheet.row(7) is None


def test_completion_deletes_cursor_and_starts_next_phase(harvester_factory, workbook) -> None:
    timer = FakeTimer()
    harvester = harvester_factory(timer)
    harvester.invoke()
    harvester.invoke()

    result = harvester.invoke()

    assert [(b.phase, b.phase_complete) for b in result.batches] == [("90d", True), ("180d", False)]
    assert workbook.properties.get(cursor_key("90d")) is None
    assert BatchCheckpoint.loads(workbook.properties.get(cursor_key("180d"))).next_row == 5
    assert workbook.properties.get(ACTIVE_PHASE_KEY) == "180d"
    assert workbook.sheet("trends_90d").row(7)[:2] == ["Hoya obovata", "/m/0obo"]
    assert len(workbook.sheet("trends_180d").row(1)) == 2 + 26


def test_full_harvest_clears_active_marker(harvester_factory, workbook) -> None:
    timer = FakeTimer()
    harvester = harvester_factory(timer)
    invocations = 0
    while True:
        invocations += 1
        if not harvester.invoke().remaining:
            break
        assert invocations < 20

    assert invocations == 7
    assert workbook.properties.get(ACTIVE_PHASE_KEY) is None
    assert workbook.properties.keys("trends.cursor.") == []
    assert timer.scheduled == []
    year = workbook.sheet("trends_365d")
    assert len(year.row(3)) == 2 + 52
    assert year.row(3)[-1] == "0"
    assert harvester.status() == {
        "active_phase": None,
        "cursors": {"90d": None, "180d": None, "365d": None},
        "pending_timers": 0,
        "entities": 5,
    }


def test_politeness_delay_after_each_entity(harvester_factory, config_builder) -> None:
    slept: list[float] = []
    config = config_builder(trends={"politeness_delay": 0.5, "batch_size": 3})
    harvester = harvester_factory(FakeTimer(), sleep=slept.append, config=config)
    harvester.invoke()
    assert slept == [0.5, 0.5, 0.5]


def test_reset_forgets_cursors(harvester_factory, workbook) -> None:
    timer = FakeTimer()
    harvester = harvester_factory(timer)
    harvester.invoke()
    assert harvester.status()["cursors"]["90d"] == 5

    assert harvester.reset() == 1
    assert workbook.properties.get(ACTIVE_PHASE_KEY) is None
    assert timer.scheduled == []
    assert harvester.invoke().batches[0].next_row == 5


def test_empty_entity_sheet_finishes_in_one_invocation(run_context, workbook) -> None:
    seed_entities(workbook, [])
    harvester = TrendHarvester(run_context(trends_api), timer=FakeTimer(), today=lambda: TODAY)
    result = harvester.invoke()
    assert result.remaining is False
    assert [b.processed for b in result.batches] == [0, 0, 0]


def test_short_series_fills_the_newest_columns(run_context, workbook) -> None:
    def short_api(request: httpx.Request) -> httpx.Response:
        timeline = [{"values": [{"value": str(n), "extracted_value": n}]} for n in range(1, 5)]
        return json_response({"interest_over_time": {"timeline_data": timeline}})

    seed_entities(workbook, ["Hoya kerrii"])
    TrendHarvester(run_context(short_api), timer=FakeTimer(), today=lambda: TODAY).invoke()

    sheet = workbook.sheet("trends_90d")
    header, row = sheet.row(1), sheet.row(3)
    assert len(row) == len(header) == 15
    assert row[:11] == ["Hoya kerrii", ""] + [""] * 9
    by_date = dict(zip(header, row))
    assert by_date["2024-06-30"] == "4"
    assert by_date["2024-06-09"] == "1"


def test_settled_stays_clear_while_a_rearm_is_pending(harvester_factory) -> None:
    timer = FakeTimer()
    harvester = harvester_factory(timer)
    assert not harvester.settled.is_set()

    harvester.invoke()
    assert not harvester.settled.is_set()

    while timer.scheduled:
        _, callback, _ = timer.scheduled[-1]
        callback()
    assert harvester.settled.is_set()
    assert harvester.status()["active_phase"] is None


def test_settled_without_timer_and_after_failure(harvester_factory, monkeypatch) -> None:
    harvester = harvester_factory()
    assert harvester.invoke().remaining is True
    assert harvester.settled.is_set()

    def broken_batch(*_args):
        raise RuntimeError("sheet unavailable")

    monkeypatch.setattr(harvester, "run_batch", broken_batch)
    harvester.settled.clear()
    with pytest.raises(RuntimeError):
        harvester.invoke()
    assert harvester.settled.is_set()
