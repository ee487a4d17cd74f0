"""
Scheduler infrastructure for the periodic crawl.
"""

import logging
from typing import Any, Callable, Dict, Optional, Union

from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from croniter import croniter


logger = logging.getLogger(__name__)


def validate_cron_expression(cron_expression: str) -> bool:
    """Validate a five-field cron expression using croniter."""
    if len(cron_expression.split()) != 5:
        logger.error(f"Cron expression must have 5 parts: '{cron_expression}'")
        return False
    try:
        croniter(cron_expression)
        return True
    except (ValueError, KeyError) as e:
        logger.error(f"Invalid cron expression '{cron_expression}': {e}")
        return False


class Scheduler:
    """Async task scheduler wrapper around APScheduler with optional persistence."""

    def __init__(
        self,
        db_url: str = "sqlite:///data/scheduler_jobs.db",
        timezone: str = "UTC",
        enable_persistence: bool = False,
    ):
        """Initialize scheduler with optional persistence and timezone."""
        if enable_persistence:
            # Jobs survive restarts; job functions must be given as "module:function" strings
            jobstores = {"default": SQLAlchemyJobStore(url=db_url)}
        else:
            jobstores = {}

        job_defaults = {
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 3600,  # seconds
        }

        self._scheduler = AsyncIOScheduler(
            jobstores=jobstores,
            job_defaults=job_defaults,
            timezone=timezone,
        )
        self._persistent = enable_persistence
        self._started = False

    async def start(self) -> None:
        """Start the scheduler."""
        if not self._started:
            self._scheduler.start()
            self._started = True
            logger.info(f"Scheduler started (persistence={'on' if self._persistent else 'off'})")

    async def stop(self) -> None:
        """Stop the scheduler."""
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.info("Scheduler stopped")

    def add_cron_job(
        self,
        func: Union[str, Callable],
        cron_expression: str,
        job_id: Optional[str] = None,
        **kwargs,
    ) -> None:
        """Add a job that runs on a cron schedule (minute hour day month day_of_week)."""
        if not validate_cron_expression(cron_expression):
            raise ValueError(f"Invalid cron expression: {cron_expression}")

        minute, hour, day, month, day_of_week = cron_expression.split()
        trigger = CronTrigger(
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=day_of_week,
            timezone=self._scheduler.timezone,
        )

        self._scheduler.add_job(
            func,
            trigger=trigger,
            id=job_id,
            replace_existing=True,
            **kwargs,
        )

        name = job_id or (func if isinstance(func, str) else func.__name__)
        logger.info(f"Added cron job: {name} ({cron_expression})")

    def remove_job(self, job_id: str) -> None:
        """Remove a job by ID."""
        self._scheduler.remove_job(job_id)
        logger.info(f"Removed job: {job_id}")

    def list_jobs(self) -> Dict[str, Any]:
        """List all scheduled jobs."""
        jobs = {}
        for job in self._scheduler.get_jobs():
            jobs[job.id] = {
                "name": job.name,
                "next_run": getattr(job, "next_run_time", None),
                "trigger": str(job.trigger),
            }
        return jobs
