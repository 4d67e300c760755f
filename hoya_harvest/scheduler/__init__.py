"""Scheduler adapters."""

from .apsched_adapter import APSchedulerAdapter, TimerFacility

__all__ = ["APSchedulerAdapter", "TimerFacility"]
