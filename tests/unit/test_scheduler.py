import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from ingestion.scheduler import SyncScheduler
from schemas.sync import DatasetSyncResult, SyncReport


def test_scheduler_initialization(registry):
    scheduler = SyncScheduler(registry=registry, interval_minutes=30)
    assert scheduler.scheduler is not None
    assert scheduler.interval_minutes == 30
    assert scheduler.registry is registry


@pytest.mark.asyncio
async def test_scheduler_job_execution(registry, feed):
    with patch("ingestion.scheduler.SyncOrchestrator") as mock_orchestrator_cls:
        mock_orchestrator = MagicMock()
        mock_orchestrator.sync_all = AsyncMock(return_value=SyncReport(results=[
            DatasetSyncResult(dataset="pm_ajay_dataset_1", dataset_id=1, success=True, records=2)
        ], total_records=2))
        mock_orchestrator_cls.return_value = mock_orchestrator

        mock_session = AsyncMock()
        mock_maker = MagicMock()
        mock_maker.return_value.__aenter__.return_value = mock_session

        scheduler = SyncScheduler(registry=registry, feed=feed, session_maker=mock_maker)
        await scheduler.run_sync_job()

        mock_orchestrator_cls.assert_called_once_with(mock_session, registry, feed=feed)
        assert mock_orchestrator.sync_all.called


@pytest.mark.asyncio
async def test_scheduler_job_swallows_failures(registry):
    with patch("ingestion.scheduler.SyncOrchestrator") as mock_orchestrator_cls:
        mock_orchestrator_cls.return_value.sync_all = AsyncMock(side_effect=RuntimeError("database down"))

        mock_maker = MagicMock()
        mock_maker.return_value.__aenter__.return_value = AsyncMock()

        scheduler = SyncScheduler(registry=registry, session_maker=mock_maker)
        await scheduler.run_sync_job()


@pytest.mark.asyncio
async def test_start_registers_interval_job(registry):
    scheduler = SyncScheduler(registry=registry, interval_minutes=15)
    scheduler.start()
    try:
        job = scheduler.scheduler.get_job("dataset_sync_job")
        assert job is not None
        assert job.trigger.interval.total_seconds() == 15 * 60
    finally:
        scheduler.stop()
