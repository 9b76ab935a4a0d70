"""
Scheduler service for background jobs.

Uses APScheduler to run:
- the missing-data sweep (every MISSING_DATA_SWEEP_SECONDS)
- raw sample retention cleanup (daily)

With multiple uvicorn workers, distributed locking via Redis ensures
only one worker executes each scheduled job.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from pulsewatch.core.config import settings
from pulsewatch.core.redis import get_redis
from pulsewatch.db.session import async_session_maker
from pulsewatch.services.missing_data import missing_data_monitor
from pulsewatch.services.retention import cleanup_old_samples

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone="UTC")


class SchedulerService:
    """Service for managing scheduled background jobs."""

    def __init__(self, session_factory=None, monitor=None):
        self._session_factory = session_factory or async_session_maker
        self._monitor = monitor or missing_data_monitor

    def start(self):
        """Start the scheduler and register jobs."""
        if not scheduler.running:
            self._schedule_missing_data_sweep()
            self._schedule_retention_cleanup()
            scheduler.start()
            logger.info("Scheduler started")

    def stop(self):
        """Stop the scheduler."""
        if scheduler.running:
            scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    async def _run_with_lock(self, lock_name: str, timeout: int, job_func):
        """
        Execute a job function with distributed locking.

        Only one worker will execute the job; others will skip.

        Args:
            lock_name: Unique name for the lock (e.g., "scheduler:missing_data")
            timeout: Lock timeout in seconds
            job_func: Async function to execute if lock acquired
        """
        try:
            redis = await get_redis()
        except Exception as e:
            logger.warning("Redis unavailable, running job without lock: %s", e)
            await job_func()
            return

        lock = redis.lock(lock_name, timeout=timeout, blocking=False)

        try:
            acquired = await lock.acquire(blocking=False)
        except Exception as e:
            logger.warning("Redis lock %s unavailable, running job without lock: %s", lock_name, e)
            await job_func()
            return

        if not acquired:
            logger.debug("Lock %s held by another worker, skipping", lock_name)
            return

        try:
            await job_func()
        except Exception as e:
            logger.error("Error in locked job %s: %s", lock_name, e)
        finally:
            try:
                await lock.release()
            except Exception:
                logger.debug("Lock %s expired before release", lock_name)

    def _schedule_missing_data_sweep(self):
        """Schedule the missing-data sweep; ticks never overlap."""
        interval = settings.MISSING_DATA_SWEEP_SECONDS
        scheduler.add_job(
            self._run_missing_data_sweep,
            trigger=IntervalTrigger(seconds=interval),
            id="missing_data_sweep",
            name="missing data sweep",
            replace_existing=True,
            max_instances=1,  # skip a tick while the previous sweep runs
            coalesce=True,  # never replay missed ticks
            misfire_grace_time=interval,
        )
        logger.info("Scheduled missing_data_sweep job (every %s seconds)", interval)

    def _schedule_retention_cleanup(self):
        """Schedule the raw sample retention job (daily at 3 AM UTC)."""
        scheduler.add_job(
            self._run_retention_cleanup,
            trigger=CronTrigger(hour=3, minute=0),
            id="retention_cleanup",
            name="metric sample retention",
            replace_existing=True,
            misfire_grace_time=3600,
        )
        logger.info("Scheduled retention_cleanup job (daily at 3:00 AM)")

    async def _run_missing_data_sweep(self):
        await self._run_with_lock(
            "scheduler:missing_data_sweep",
            timeout=max(settings.MISSING_DATA_SWEEP_SECONDS * 3, 30),
            job_func=self._execute_missing_data_sweep,
        )

    async def _execute_missing_data_sweep(self):
        await self._monitor.sweep()

    async def _run_retention_cleanup(self):
        await self._run_with_lock(
            "scheduler:retention_cleanup",
            timeout=1800,
            job_func=self._execute_retention_cleanup,
        )

    async def _execute_retention_cleanup(self):
        """Delete samples older than RETENTION_DAYS."""
        async with self._session_factory() as session:
            try:
                count = await cleanup_old_samples(session, settings.RETENTION_DAYS)
                await session.commit()
                if count > 0:
                    logger.info("Retention cleanup: removed %s old samples", count)
            except Exception as e:
                await session.rollback()
                logger.error("Scheduled retention cleanup failed: %s", e)


scheduler_service = SchedulerService()
