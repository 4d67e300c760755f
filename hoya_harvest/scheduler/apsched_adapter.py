"""APScheduler wrapper exposing one-shot re-invocation timers."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from ..logging_conf import component_logger


class TimerFacility(Protocol):
    """Schedule, list and cancel single future invocations by handler name."""

    def schedule_once(self, handler: str, callback: Callable[[], object], delay_seconds: float) -> str: ...

    def pending(self, handler: str) -> list[dict]: ...

    def cancel(self, handler: str) -> int: ...


class APSchedulerAdapter:
    """Manage APScheduler one-shot jobs keyed by handler name."""

    def __init__(self, scheduler: BackgroundScheduler | None = None) -> None:
        self.scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)
        self.logger = component_logger("scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self, wait: bool = False) -> None:
        if self.started:
            self.scheduler.shutdown(wait=wait)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_once(self, handler: str, callback: Callable[[], object], delay_seconds: float) -> str:
        run_date = datetime.now(timezone.utc) + timedelta(seconds=max(0.0, delay_seconds))
        job_id = f"{handler}::{uuid.uuid4().hex[:12]}"
        self.scheduler.add_job(
            callback,
            trigger=DateTrigger(run_date=run_date),
            id=job_id,
            name=handler,
            replace_existing=True,
        )
        self.logger.info("timer_scheduled", handler=handler, job_id=job_id, run_date=run_date.isoformat())
        return job_id

    def pending(self, handler: str) -> list[dict]:
        return [job for job in self.list_jobs() if job["name"] == handler]

    def cancel(self, handler: str) -> int:
        removed = 0
        for job in self.pending(handler):
            try:
                self.scheduler.remove_job(job["id"])
                removed += 1
            except JobLookupError:
                self.logger.warning("timer_remove_failed", handler=handler, job_id=job["id"])
        if removed:
            self.logger.info("timer_cancelled", handler=handler, count=removed)
        return removed

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter", "TimerFacility"]
