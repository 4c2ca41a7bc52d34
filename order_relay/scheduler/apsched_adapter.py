"""APScheduler wrapper running non-overlapping polling cycles."""

from __future__ import annotations

from typing import Callable

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import PollingConfig
from .gate import ActiveHoursGate

POLL_JOB_ID = "relay::poll"


class APSchedulerAdapter:
    """Manage the interval job that drives the reconciler."""

    def __init__(self, scheduler: BackgroundScheduler | None = None) -> None:
        self.scheduler = scheduler or BackgroundScheduler()
        self.logger = structlog.get_logger("order_relay").bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self, wait: bool = True) -> None:
        if self.started:
            self.scheduler.shutdown(wait=wait)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_polling(self, polling: PollingConfig, run_cycle: Callable[[], object]) -> None:
        gate = ActiveHoursGate(polling.active_hours)
        self.scheduler.add_job(
            self.guarded(run_cycle, gate),
            trigger=IntervalTrigger(seconds=polling.interval_seconds),
            id=POLL_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info(
            "job_scheduled",
            interval_seconds=polling.interval_seconds,
            active_hours=polling.active_hours.model_dump(mode="json") if polling.active_hours else None,
        )

    def guarded(self, run_cycle: Callable[[], object], gate: ActiveHoursGate) -> Callable[[], None]:
        """Wrap ``run_cycle`` so it only runs while ``gate`` is open and never raises."""

        def _job() -> None:
            if not gate.is_open():
                self.logger.debug("cycle_gated")
                return
            try:
                run_cycle()
            except Exception:  # noqa: BLE001
                self.logger.exception("cycle_crashed")

        return _job

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter", "POLL_JOB_ID"]
