"""Cron-driven scheduling of ingestion cycles."""

from __future__ import annotations

import logging
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from ..config import SchedulerConfig

logger = logging.getLogger(__name__)

__all__ = ["IngestionScheduler", "InvalidScheduleError", "parse_cron"]

JOB_ID = "ingestion-cycle"


class InvalidScheduleError(ValueError):
    """Raised for a cron expression that cannot be armed."""


def parse_cron(expression: str) -> CronTrigger:
    """Validate a five-field cron expression and return its trigger."""

    fields = (expression or "").split()
    if len(fields) != 5:
        raise InvalidScheduleError(f"Invalid cron schedule {expression!r}: expected 5 fields")
    try:
        return CronTrigger.from_crontab(" ".join(fields))
    except ValueError as exc:
        raise InvalidScheduleError(f"Invalid cron schedule {expression!r}: {exc}") from exc


class IngestionScheduler:
    """Arm ``job`` on a cron schedule with at most one run in flight."""

    def __init__(
        self,
        job: Callable[[], object],
        config: SchedulerConfig | None = None,
        *,
        blocking: bool = False,
        scheduler: BaseScheduler | None = None,
    ) -> None:
        self._config = config or SchedulerConfig()
        self._trigger = parse_cron(self._config.cron)
        self._job = job
        self._scheduler = scheduler or (BlockingScheduler() if blocking else BackgroundScheduler())
        self._scheduler.add_job(
            self._run_job,
            trigger=self._trigger,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info("Initializing scheduler with cron: %s", self._config.cron)

    @property
    def trigger(self) -> CronTrigger:
        return self._trigger

    @property
    def scheduler(self) -> BaseScheduler:
        return self._scheduler

    def _run_job(self) -> None:
        logger.info("Cron job triggered")
        try:
            self._job()
        except Exception:  # noqa: BLE001 - the next trigger still fires
            logger.exception("Scheduled ingestion job failed")

    def start(self) -> None:
        if self._config.run_on_startup:
            logger.info("Running initial fetch on startup...")
            self._run_job()
        logger.info("Scheduler started")
        self._scheduler.start()

    def shutdown(self, wait: bool = False) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
