"""Scheduling adapters - Wall clock and recurring timers."""

from .background import ScheduledJob, SchedulerTicker, SystemClock

__all__ = ["ScheduledJob", "SchedulerTicker", "SystemClock"]
