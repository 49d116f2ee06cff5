# ============================================================================
# File: ingestion/orchestrator.py
# Description: Sync orchestrator with per-dataset failure isolation
# ============================================================================
"""
Sync Orchestrator - drives Fetch -> Hash -> Upsert -> Metadata per dataset.

This module provides:
- "sync all" and "sync one" entry points over the static registry
- Failure isolation: one dataset's failure never aborts the others
- Partial persistence: a failed record upsert is counted as skipped
- Exactly one metadata write per dataset per attempt, after its data
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.config import settings
from core.exceptions import UpsertError, MetadataError
from ingestion.fetcher import RetryingFetcher
from ingestion.hashing import content_hash
from ingestion.linker import CrossReferenceLinker
from ingestion.metadata import SyncMetadataTracker
from ingestion.registry import DatasetDescriptor, DatasetRegistry
from ingestion.store import DatasetStore
from models.base import SyncStatus, UpsertOutcome
from realtime.feed import ChangeFeedRegistry
from schemas.sync import DatasetSyncResult, SyncReport

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    Dataset sync orchestrator

    Responsibilities:
    - Resolve datasets from the registry (unknown ids are rejected up front)
    - Fetch one page per dataset, hash and upsert every record in order
    - Record the terminal outcome of every attempt in sync metadata
    - Optionally run the cross-reference linker after a full sync
    """

    def __init__(
        self,
        db_session: AsyncSession,
        registry: DatasetRegistry,
        fetcher: Optional[RetryingFetcher] = None,
        feed: Optional[ChangeFeedRegistry] = None,
        page_limit: Optional[int] = None,
        link_after_sync: Optional[bool] = None
    ):
        self.db = db_session
        self.registry = registry
        self.fetcher = fetcher or RetryingFetcher()
        self.store = DatasetStore(db_session, feed=feed)
        self.tracker = SyncMetadataTracker(db_session, feed=feed)
        self.linker = CrossReferenceLinker(db_session, registry.links, feed=feed)
        self.page_limit = page_limit or settings.SYNC_PAGE_LIMIT
        self.link_after_sync = settings.LINK_AFTER_SYNC if link_after_sync is None else link_after_sync

    async def sync_all(self) -> SyncReport:
        """
        Sync every registered dataset in registry order.

        Upstream problems never raise; they show up as failed results.

        Raises:
            MetadataError: Sync metadata could not be written (infrastructure)
        """
        logger.info(f"Starting sync of {len(self.registry)} datasets")
        await self.tracker.ensure_rows(self.registry)

        report = SyncReport()
        for descriptor in self.registry:
            report.results.append(await self._sync_dataset(descriptor))

        if self.link_after_sync and self.registry.links:
            report.links = await self.linker.link_all()

        return self._finalize(report)

    async def sync_one(self, dataset_id) -> SyncReport:
        """
        Sync a single dataset.

        Raises:
            DatasetValidationError: dataset_id is not registered; nothing is
                fetched or written
            MetadataError: Sync metadata could not be written (infrastructure)
        """
        descriptor = self.registry.get(dataset_id)
        logger.info(f"Starting sync of dataset {descriptor.id} ({descriptor.store})")
        await self.tracker.ensure_rows([descriptor])

        report = SyncReport(results=[await self._sync_dataset(descriptor)])
        return self._finalize(report)

    def _finalize(self, report: SyncReport) -> SyncReport:
        report.total_records = sum(r.records for r in report.results if r.success)
        succeeded = sum(1 for r in report.results if r.success)

        logger.info(
            f"Sync completed: {succeeded}/{len(report.results)} datasets succeeded, "
            f"{report.total_records} records"
        )
        return report

    async def _sync_dataset(self, descriptor: DatasetDescriptor) -> DatasetSyncResult:
        # --------------------------------------------------
        # FETCH + UPSERT (failures isolated to this dataset)
        # --------------------------------------------------
        try:
            page = await self.fetcher.fetch_dataset(descriptor, limit=self.page_limit)

            if not page.records:
                logger.info(f"{descriptor.store}: no records found")
                await self._record(descriptor, SyncStatus.SUCCESS, count=await self.store.count_records(descriptor.store))
                return DatasetSyncResult(
                    dataset=descriptor.store,
                    dataset_id=descriptor.id,
                    success=True,
                    records=0,
                    inserted=0,
                    skipped=0,
                    message="No records found"
                )

            inserted, skipped = await self._upsert_page(descriptor, page.records)

        except MetadataError:
            raise

        except Exception as e:
            error = getattr(e, "message", None) or str(e) or type(e).__name__
            logger.error(f"Sync failed for {descriptor.store}: {error}")
            await self.db.rollback()

            await self._record(descriptor, SyncStatus.ERROR, error=error, count=await self.store.count_records(descriptor.store))
            return DatasetSyncResult(
                dataset=descriptor.store,
                dataset_id=descriptor.id,
                success=False,
                records=0,
                error=error
            )

        # --------------------------------------------------
        # METADATA (only after every record is committed)
        # --------------------------------------------------
        total = await self.store.count_records(descriptor.store)
        await self._record(descriptor, SyncStatus.SUCCESS, count=total)

        logger.info(
            f"{descriptor.store}: {len(page.records)} records fetched, "
            f"{inserted} inserted, {skipped} skipped, {total} stored"
        )
        return DatasetSyncResult(
            dataset=descriptor.store,
            dataset_id=descriptor.id,
            success=True,
            records=len(page.records),
            inserted=inserted,
            skipped=skipped
        )

    async def _upsert_page(self, descriptor: DatasetDescriptor, records: list):
        inserted = 0
        skipped = 0

        for index, record in enumerate(records):
            if not isinstance(record, dict):
                logger.warning(f"{descriptor.store}: skipping non-object record at index {index}")
                skipped += 1
                continue

            record_hash = content_hash(record)
            record_id = descriptor.record_identity(record, index, record_hash)

            try:
                outcome = await self.store.upsert(descriptor.store, record_id, record, record_hash)
            except UpsertError as e:
                logger.error(f"{descriptor.store}: record {record_id} not stored: {e}")
                skipped += 1
                continue

            if outcome == UpsertOutcome.INSERTED:
                inserted += 1
            else:
                skipped += 1

        return inserted, skipped

    async def _record(self, descriptor: DatasetDescriptor, status: SyncStatus, error: Optional[str] = None, count: int = 0):
        await self.tracker.record_outcome(
            descriptor.store,
            status,
            error=error,
            count=count,
            resource_id=descriptor.resource_id
        )
