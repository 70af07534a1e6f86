"""APScheduler setup for periodic auto-sync."""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.services.simulator import SyncSimulator

logger = logging.getLogger(__name__)

AUTO_SYNC_JOB_ID = "auto_sync"


class AutoSyncScheduler:
    """Triggers a sync every `sync_interval` minutes while auto-sync is on."""

    def __init__(self, simulator: SyncSimulator):
        self.simulator = simulator
        self.scheduler: AsyncIOScheduler | None = None

    async def run_auto_sync(self):
        """Run one scheduled sync."""
        logger.info("Starting scheduled sync job")
        try:
            sync_op = await self.simulator.trigger(operation="sync")
            logger.info(f"Scheduled sync started: {sync_op.id}")
        except Exception as e:
            logger.error(f"Scheduled sync failed to start: {e}")

    def start(self, auto_sync: bool, sync_interval: int):
        """Start the APScheduler."""
        if self.scheduler is not None:
            logger.warning("Scheduler already started")
            return

        self.scheduler = AsyncIOScheduler()
        self.apply(auto_sync, sync_interval)
        self.scheduler.start()
        logger.info("Scheduler started")

    def apply(self, auto_sync: bool, sync_interval: int):
        """Add, reschedule or remove the auto-sync job to match settings."""
        if self.scheduler is None:
            return

        if auto_sync:
            self.scheduler.add_job(
                self.run_auto_sync,
                IntervalTrigger(minutes=sync_interval),
                id=AUTO_SYNC_JOB_ID,
                name="Periodic sync",
                replace_existing=True,
            )
            logger.info(f"Auto-sync every {sync_interval} minutes")
        elif self.scheduler.get_job(AUTO_SYNC_JOB_ID) is not None:
            self.scheduler.remove_job(AUTO_SYNC_JOB_ID)
            logger.info("Auto-sync disabled")

    def stop(self):
        """Stop the APScheduler."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            logger.info("Scheduler stopped")
