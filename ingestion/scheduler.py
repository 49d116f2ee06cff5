import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker
from core.config import settings
from core.database import async_session_maker
from ingestion.orchestrator import SyncOrchestrator
from ingestion.registry import DatasetRegistry, load_registry
from realtime.feed import ChangeFeedRegistry

logger = logging.getLogger(__name__)


class SyncScheduler:
    def __init__(
        self,
        registry: Optional[DatasetRegistry] = None,
        feed: Optional[ChangeFeedRegistry] = None,
        session_maker: Optional[async_sessionmaker] = None,
        interval_minutes: Optional[int] = None
    ):
        self.scheduler = AsyncIOScheduler()
        self.registry = registry
        self.feed = feed
        self.SessionLocal = session_maker or async_session_maker
        self.interval_minutes = interval_minutes or settings.SYNC_INTERVAL_MINUTES

    async def run_sync_job(self):
        """Job to sync every registered dataset"""
        logger.info("Scheduler: Starting sync job")
        async with self.SessionLocal() as session:
            try:
                registry = self.registry or load_registry()
                orchestrator = SyncOrchestrator(session, registry, feed=self.feed)
                report = await orchestrator.sync_all()

                failed = [r.dataset for r in report.results if not r.success]
                if failed:
                    logger.warning(f"Scheduler: sync finished with failures in {', '.join(failed)}")
                else:
                    logger.info(f"Scheduler: sync finished, {report.total_records} records")

            except Exception as e:
                logger.error(f"Scheduler: sync job failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_sync_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="dataset_sync_job",
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(f"Sync scheduler started (every {self.interval_minutes} minutes)")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Sync scheduler stopped")
