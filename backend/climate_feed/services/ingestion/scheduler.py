"""
Ingestion Scheduler - runs the orchestrator at startup and then on a
fixed interval for the lifetime of the process.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from climate_feed.models.domain import IngestionResult, RunTrigger
from climate_feed.services.ingestion.orchestrator import IngestionOrchestrator

logger = structlog.get_logger(__name__)

JOB_ID = "feed_ingestion"


class IngestionScheduler:
    """
    Schedules and runs periodic feed ingestion.

    The job never overlaps itself: APScheduler is limited to one instance
    and the orchestrator refuses to start a second concurrent run. Errors
    escaping a run are logged and the next tick proceeds normally.
    """

    def __init__(
        self,
        orchestrator: IngestionOrchestrator,
        interval_hours: float = 6,
        run_on_startup: bool = True,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.orchestrator = orchestrator
        self.interval = timedelta(hours=interval_hours)
        self.run_on_startup = run_on_startup
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)

        self._started = False
        self._startup_pending = run_on_startup
        self._last_run_at: Optional[datetime] = None
        self._last_error: Optional[str] = None

    def start(self):
        """Start the scheduler; the first run fires immediately when configured."""
        if self._started:
            logger.warning("Scheduler already running")
            return

        job_options = {}
        if self.run_on_startup:
            # Passing next_run_time=None would add the job paused
            job_options["next_run_time"] = datetime.now(timezone.utc)

        self._scheduler.add_job(
            self._run_job,
            IntervalTrigger(seconds=self.interval.total_seconds(), timezone=timezone.utc),
            id=JOB_ID,
            name="Feed ingestion",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_options,
        )
        self._scheduler.start()
        self._started = True
        logger.info(
            "Ingestion scheduler started",
            interval_hours=self.interval.total_seconds() / 3600,
            run_on_startup=self.run_on_startup,
        )

    def shutdown(self):
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.info("Ingestion scheduler stopped")

    async def _run_job(self):
        """Scheduled entry point; must never raise."""
        trigger: RunTrigger = "startup" if self._startup_pending else "scheduled"
        self._startup_pending = False
        await self.run_now(trigger)

    async def run_now(self, trigger: RunTrigger = "manual") -> Optional[IngestionResult]:
        """Run ingestion immediately, logging instead of raising on failure."""
        try:
            result = await self.orchestrator.run(trigger)
        except Exception as e:
            self._last_error = str(e)
            logger.error("Ingestion run failed", trigger=trigger, error=str(e), exc_info=True)
            return None

        if not result.summary.skipped:
            self._last_run_at = result.summary.started_at
            self._last_error = None
        return result

    @property
    def is_running(self) -> bool:
        return self._started

    def next_run_time(self) -> Optional[datetime]:
        job = self._scheduler.get_job(JOB_ID) if self._started else None
        return job.next_run_time if job else None

    def get_status(self) -> dict:
        """Get scheduler status."""
        next_run = self.next_run_time()
        last_summary = self.orchestrator.last_summary

        return {
            "scheduler_running": self._started,
            "ingestion_in_progress": self.orchestrator.is_running,
            "interval_hours": self.interval.total_seconds() / 3600,
            "last_run_at": self._last_run_at.isoformat() if self._last_run_at else None,
            "next_run_at": next_run.isoformat() if next_run else None,
            "last_error": self._last_error,
            "last_summary": last_summary.model_dump(mode="json") if last_summary else None,
        }
