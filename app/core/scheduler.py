"""
Automated task scheduler.

One scheduled job: a daily refresh of the current season for every
supported league. It goes through the same sync lock as the HTTP trigger,
so a scheduled run is skipped while a manual one is in progress (and vice
versa). Disabled unless SYNC_SCHEDULE_ENABLED is set.

Scheduler: APScheduler (lightweight, FastAPI-compatible)
"""
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.config import settings
from app.core.kv_store import get_kv_store
from app.core.logging import get_logger
from app.services.sync.jobs import sync_if_idle
from app.services.sync.lock import SyncLock

logger = get_logger(__name__)

CURRENT_SEASON_JOB_ID = "current_season_sync"


class AutomationScheduler:
    """
    Main scheduler for automated background tasks.

    All scheduled jobs should be defined here with clear
    schedules and error handling.
    """

    def __init__(self, timezone: Optional[str] = None, cron_hour: Optional[str] = None):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False
        self.timezone = timezone or settings.SYNC_SCHEDULE_TIMEZONE
        self.cron_hour = cron_hour or settings.SYNC_SCHEDULE_CRON_HOUR

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting automation scheduler...")

        self.scheduler = AsyncIOScheduler(
            timezone=self.timezone,
            job_defaults={
                'coalesce': True,  # Combine missed runs into one
                'max_instances': 1,  # Only one instance of each job
                'misfire_grace_time': 300  # 5 minutes grace for misfires
            }
        )

        self._schedule_current_season_sync()

        self.scheduler.start()
        self.running = True

        logger.info("✅ Scheduler started with %d jobs", len(self.scheduler.get_jobs()))
        self._log_scheduled_jobs()

    async def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("✅ Scheduler stopped")

    @staticmethod
    async def run_current_season_sync():
        """
        Refresh the current season of every league.

        years_to_sync=1 also covers last season, which for split-season
        leagues may still be in progress early in the calendar year.
        """
        try:
            result = await sync_if_idle(1, SyncLock(get_kv_store()))
            if result is None:
                logger.info("⏭️  Current-season sync skipped: another sync is running")
                return
            logger.info(
                f"✅ Current-season sync: {result.synced_matches} new, "
                f"{result.skipped_matches} updated/skipped of {result.total_matches}"
            )
        except Exception as e:
            logger.error(f"❌ Current-season sync failed: {e}")

    def _schedule_current_season_sync(self):
        """
        Schedule: Refresh current-season matches.

        Frequency: Daily at SYNC_SCHEDULE_CRON_HOUR (SYNC_SCHEDULE_TIMEZONE)
        Purpose: Pick up finished matches and updated scores without a manual trigger
        """
        if self.scheduler is None:
            return

        self.scheduler.add_job(
            self.run_current_season_sync,
            trigger=CronTrigger(hour=self.cron_hour, minute=0, timezone=self.timezone),
            id=CURRENT_SEASON_JOB_ID,
            name='Sync Current Season Matches',
            misfire_grace_time=600,
        )

        logger.info(f"📅 Scheduled: Current-season sync (daily at {self.cron_hour}:00 {self.timezone})")

    def _log_scheduled_jobs(self):
        """Log all scheduled jobs for visibility."""
        jobs = self.scheduler.get_jobs()

        logger.info("=" * 60)
        logger.info("SCHEDULED AUTOMATION JOBS")
        logger.info("=" * 60)

        for job in jobs:
            next_run = job.next_run_time
            next_run_str = next_run.strftime('%Y-%m-%d %H:%M %Z') if next_run else 'Pending'

            logger.info(f"  • {job.name}")
            logger.info(f"    ID: {job.id}")
            logger.info(f"    Next run: {next_run_str}")

        logger.info("=" * 60)


# Global scheduler instance
_scheduler: Optional[AutomationScheduler] = None


async def start_scheduler():
    """Start the global scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AutomationScheduler()
        await _scheduler.start()
    return _scheduler


async def stop_scheduler():
    """Stop the global scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None


def get_scheduler() -> Optional[AutomationScheduler]:
    """Get the global scheduler instance."""
    return _scheduler
