"""Scheduling helpers."""

from .apsched_adapter import POLL_JOB_ID, APSchedulerAdapter
from .gate import ActiveHoursGate

__all__ = ["APSchedulerAdapter", "ActiveHoursGate", "POLL_JOB_ID"]
