"""Background scheduler orchestration."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import AppConfig
from .measurements.manager import MeasurementManager

LOGGER = logging.getLogger(__name__)

JOB_ID = "scheduled-measurements"


class SchedulerService:
    """Fires one measurement cycle per cron tick.

    The job allows a single running instance and coalesces misses: a cycle
    that overruns its slot makes the overlapping fire be skipped, so the next
    run happens at the following nominal tick rather than concurrently or as
    a queued catch-up.
    """

    def __init__(
        self,
        config: AppConfig,
        measurement_manager: MeasurementManager,
        scheduler: Optional[BackgroundScheduler] = None,
    ) -> None:
        self.config = config
        self.measurements = measurement_manager
        self.scheduler = scheduler or BackgroundScheduler(timezone=config.scheduler.timezone)
        self.started = False

    def build_trigger(self) -> CronTrigger:
        return CronTrigger.from_crontab(self.config.scheduler.cron, timezone=self.config.scheduler.timezone)

    def start(self, run_now: bool = False) -> None:
        if self.started:
            LOGGER.warning("Scheduler already started, ignoring duplicate start request")
            return

        trigger = self.build_trigger()
        job_kwargs = {}
        if run_now or self.config.scheduler.run_on_start:
            job_kwargs["next_run_time"] = datetime.now(trigger.timezone)

        self.scheduler.add_job(
            self._run_cycle,
            trigger=trigger,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **job_kwargs,
        )
        self.scheduler.start()
        self.started = True
        LOGGER.info(
            "Scheduler started with cron '%s' against %s",
            self.config.scheduler.cron,
            self.config.target.address,
        )

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False

    def next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def _run_cycle(self) -> None:
        LOGGER.info("Starting scheduled measurement cycle at %s", datetime.now().astimezone().isoformat())
        try:
            self.measurements.run_cycle()
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.exception("Scheduled measurement failed: %s", exc)
