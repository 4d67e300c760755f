"""Checkpointed three-phase interest-over-time harvest.

Each invocation processes one or more batches of entities. When a phase is
not finished the cursor is persisted in the property store and a one-shot
timer re-invokes the harvester later; a finished phase hands over to the
next one with a fresh sheet.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from threading import Event, Lock
from typing import Any, Callable

from .config import TrendPhaseConfig
from .context import RunContext
from .engine import extract_interest
from .infra.sheets import SheetStore
from .models import NO_DATA, BatchCheckpoint, SearchTarget, TrendSeries
from .scheduler import TimerFacility

ACTIVE_PHASE_KEY = "trends.active_phase"
CURSOR_PREFIX = "trends.cursor."


def cursor_key(label: str) -> str:
    return f"{CURSOR_PREFIX}{label}"


def weekly_dates(today: date, weeks: int) -> list[str]:
    """ISO dates of ``today - n weeks`` for n in 0..weeks-1, oldest first."""

    stamps = {today - timedelta(weeks=n) for n in range(weeks)}
    return [stamp.isoformat() for stamp in sorted(stamps)]


def timeline_values(payload: dict[str, Any]) -> list[float]:
    block = payload.get("interest_over_time")
    timeline = block.get("timeline_data") if isinstance(block, dict) else None
    if not isinstance(timeline, list):
        return []
    values: list[float] = []
    for point in timeline:
        if not isinstance(point, dict):
            continue
        entries = point.get("values")
        if not isinstance(entries, list) or not entries:
            continue
        value = extract_interest(entries[0])
        if value is not None:
            values.append(value)
    return values


@dataclass(frozen=True)
class BatchOutcome:
    phase: str
    next_row: int
    processed: int
    phase_complete: bool


@dataclass
class InvocationResult:
    remaining: bool
    phase: str | None = None
    batches: list[BatchOutcome] = field(default_factory=list)


class TrendHarvester:
    """Resumable harvest of weekly interest series across growing windows."""

    def __init__(
        self,
        context: RunContext,
        timer: TimerFacility | None = None,
        *,
        today: Callable[[], date] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.context = context
        self.config = context.config.trends
        self.properties = context.workbook.properties
        self.timer = timer
        self._today = today or (lambda: datetime.now(timezone.utc).date())
        self._sleep = sleep
        self._lock = Lock()
        self.settled = Event()
        self.logger = context.logger.bind(component="trends")

    @property
    def phases(self) -> list[TrendPhaseConfig]:
        return list(self.config.phases)

    # ------------------------------------------------------------------
    def phase(self, label: str) -> TrendPhaseConfig:
        for candidate in self.config.phases:
            if candidate.label == label:
                return candidate
        raise KeyError(label)

    def active_phase(self) -> TrendPhaseConfig | None:
        label = self.properties.get(ACTIVE_PHASE_KEY)
        if not label:
            return None
        try:
            return self.phase(label)
        except KeyError:
            self.logger.warning("unknown_active_phase", phase=label)
            return None

    def checkpoint(self, phase: TrendPhaseConfig) -> BatchCheckpoint | None:
        raw = self.properties.get(cursor_key(phase.label))
        return BatchCheckpoint.loads(raw) if raw else None

    def sheet(self, phase: TrendPhaseConfig) -> SheetStore:
        return self.context.workbook.sheet(phase.sheet)

    # ------------------------------------------------------------------
    def start_phase(self, phase: TrendPhaseConfig) -> BatchCheckpoint:
        """Clear the phase sheet, write its headers and place the cursor on the first data row."""

        today = self._today()
        sheet = self.sheet(phase)
        sheet.clear()
        sheet.write_row(1, ["name", "identifier"] + weekly_dates(today, phase.weeks))
        if self.context.config.header_rows > 1:
            generated = datetime.now(timezone.utc).isoformat(timespec="seconds")
            sheet.write_row(2, ["window", f"{phase.days} days", "generated_at", generated])
        checkpoint = BatchCheckpoint(
            phase=phase.label, sheet=phase.sheet, next_row=self.context.config.first_data_row
        )
        self.properties.set(ACTIVE_PHASE_KEY, phase.label)
        self.logger.info("phase_started", phase=phase.label, weeks=phase.weeks, days=phase.days)
        return checkpoint

    def run_batch(self, phase: TrendPhaseConfig, checkpoint: BatchCheckpoint) -> BatchOutcome:
        entities = self.context.entities
        last_row = entities.last_row()
        stop = min(checkpoint.next_row + self.config.batch_size, last_row + 1)
        sheet = self.sheet(phase)
        cursor = checkpoint.next_row
        processed = 0
        while cursor < stop:
            sheet.write_row(cursor, self._harvest_row(phase, cursor))
            cursor += 1
            processed += 1
            if self.config.politeness_delay:
                self._sleep(self.config.politeness_delay)
        complete = cursor > last_row
        if complete:
            self.properties.delete(cursor_key(phase.label))
        else:
            self.properties.set(
                cursor_key(phase.label),
                BatchCheckpoint(phase=phase.label, sheet=phase.sheet, next_row=cursor).dumps(),
            )
        self.logger.info(
            "batch_complete",
            phase=phase.label,
            processed=processed,
            next_row=cursor,
            phase_complete=complete,
        )
        return BatchOutcome(phase=phase.label, next_row=cursor, processed=processed, phase_complete=complete)

    def _harvest_row(self, phase: TrendPhaseConfig, row_index: int) -> list[str]:
        values = self.context.entities.row(row_index) or []
        raw_name = values[0] if values else ""
        identifier = values[1].strip() if len(values) > 1 else ""
        target = SearchTarget.from_raw(
            raw_name, row_index, identifier, self.context.config.relevance.max_name_length
        )
        try:
            today = self._today()
            request = self.context.builder.trends(target, today - timedelta(days=phase.days), today)
            result = self.context.fetcher.fetch(request)
            series = timeline_values(result.payload)
        except Exception as exc:
            self.logger.warning(
                "trend_entity_failed", phase=phase.label, entity=target.name, row=row_index, error=str(exc)
            )
            return [target.name, identifier, NO_DATA]
        if not series:
            self.logger.info("trend_no_data", phase=phase.label, entity=target.name, row=row_index)
            return [target.name, identifier, NO_DATA]
        recent = series[-phase.weeks :]
        row = TrendSeries(target.name, identifier, tuple(recent)).to_row()
        # newest value lands under the newest weekly column
        return row[:2] + [""] * (phase.weeks - len(recent)) + row[2:]

    # ------------------------------------------------------------------
    def invoke(self) -> InvocationResult:
        """Entry point for every (re-)trigger; serialized by an internal lock.

        ``settled`` is cleared while an invocation runs and stays clear while a
        re-arm timer is pending, so waiters only wake once no further
        invocation is expected.
        """

        with self._lock:
            self.settled.clear()
            rearmed = False
            try:
                if self.timer is not None:
                    self.timer.cancel(self.config.handler_name)
                result = InvocationResult(remaining=False)
                phase = self.active_phase()
                checkpoint = self.checkpoint(phase) if phase is not None else None
                if phase is None:
                    phase = self.phases[0]
                    checkpoint = self.start_phase(phase)
                elif checkpoint is None:
                    checkpoint = self.start_phase(phase)
                else:
                    self.logger.info("phase_resumed", phase=phase.label, next_row=checkpoint.next_row)

                while True:
                    outcome = self.run_batch(phase, checkpoint)
                    result.batches.append(outcome)
                    result.phase = phase.label
                    if not outcome.phase_complete:
                        result.remaining = True
                        rearmed = self._rearm()
                        return result
                    following = self._next_phase(phase)
                    if following is None:
                        self.properties.delete(ACTIVE_PHASE_KEY)
                        self.logger.info("harvest_complete", phase=phase.label)
                        return result
                    phase = following
                    checkpoint = self.start_phase(phase)
            finally:
                if not rearmed:
                    self.settled.set()

    def _next_phase(self, phase: TrendPhaseConfig) -> TrendPhaseConfig | None:
        labels = [candidate.label for candidate in self.config.phases]
        position = labels.index(phase.label) + 1
        return self.config.phases[position] if position < len(labels) else None

    def _rearm(self) -> bool:
        if self.timer is None:
            self.logger.info("rearm_skipped", reason="no timer facility")
            return False
        self.timer.schedule_once(self.config.handler_name, self.invoke, self.config.rearm_delay_seconds)
        return True

    # ------------------------------------------------------------------
    def reset(self) -> int:
        removed = 0
        for key in self.properties.keys(CURSOR_PREFIX):
            self.properties.delete(key)
            removed += 1
        self.properties.delete(ACTIVE_PHASE_KEY)
        if self.timer is not None:
            self.timer.cancel(self.config.handler_name)
        self.settled.set()
        self.logger.info("harvest_reset", cursors=removed)
        return removed

    def status(self) -> dict[str, Any]:
        active = self.active_phase()
        cursors = {}
        for phase in self.config.phases:
            checkpoint = self.checkpoint(phase)
            cursors[phase.label] = checkpoint.next_row if checkpoint else None
        pending = self.timer.pending(self.config.handler_name) if self.timer is not None else []
        return {
            "active_phase": active.label if active else None,
            "cursors": cursors,
            "pending_timers": len(pending),
            "entities": max(0, self.context.entities.last_row() - self.context.config.header_rows),
        }


__all__ = [
    "ACTIVE_PHASE_KEY",
    "BatchOutcome",
    "CURSOR_PREFIX",
    "InvocationResult",
    "TrendHarvester",
    "cursor_key",
    "timeline_values",
    "weekly_dates",
]
