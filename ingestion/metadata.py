"""
Sync metadata tracker: the single source of per-dataset sync health
"""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import MetadataError
from models.base import SyncStatus
from models.sync_metadata import SyncMetadata
from realtime.feed import ChangeFeedRegistry, ChangeType, emit
import logging

logger = logging.getLogger(__name__)

METADATA_RESOURCE = "sync_metadata"


class SyncMetadataTracker:
    """
    Maintains one SyncMetadata row per dataset.

    record_outcome() is called exactly once per sync attempt, after the
    dataset's records are committed. There is no in-progress status.
    """

    def __init__(self, db_session: AsyncSession, feed: Optional[ChangeFeedRegistry] = None):
        self.db = db_session
        self.feed = feed

    async def get(self, dataset: str) -> Optional[SyncMetadata]:
        result = await self.db.execute(
            select(SyncMetadata).where(SyncMetadata.dataset_name == dataset)
        )
        return result.scalar_one_or_none()

    async def ensure_rows(self, descriptors: Iterable) -> int:
        """Seed a never_run row for every descriptor that has none; returns rows created"""
        try:
            result = await self.db.execute(select(SyncMetadata.dataset_name))
            existing = set(result.scalars().all())

            created = 0
            for descriptor in descriptors:
                if descriptor.store in existing:
                    continue
                self.db.add(SyncMetadata(
                    dataset_name=descriptor.store,
                    resource_id=descriptor.resource_id,
                    last_sync_status=SyncStatus.NEVER_RUN,
                    total_records=0
                ))
                existing.add(descriptor.store)
                created += 1

            if created:
                await self.db.commit()
                logger.info(f"Seeded sync metadata for {created} datasets")
            return created

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise MetadataError(
                "Failed to seed sync metadata",
                context={"operation": "INSERT", "table_name": "sync_metadata"},
                original_exception=e
            )

    async def record_outcome(
        self,
        dataset: str,
        status: SyncStatus,
        error: Optional[str] = None,
        count: int = 0,
        resource_id: Optional[str] = None
    ) -> SyncMetadata:
        """
        Write the terminal outcome of a sync attempt.

        Raises:
            MetadataError: The row could not be written
        """
        now = datetime.utcnow()

        try:
            row = await self.get(dataset)
            old = row.to_change_payload() if row else {}

            if row is None:
                row = SyncMetadata(dataset_name=dataset, created_at=now)
                self.db.add(row)

            if resource_id:
                row.resource_id = resource_id
            row.last_sync_at = now
            row.last_sync_status = status
            row.last_sync_error = error
            row.total_records = max(0, count)
            row.updated_at = now

            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise MetadataError(
                "Failed to record sync outcome",
                context={"dataset": dataset, "status": status.value},
                original_exception=e
            )

        logger.info(f"Sync metadata for {dataset}: {status.value} ({row.total_records} records)")

        emit(
            self.feed,
            METADATA_RESOURCE,
            ChangeType.UPDATE if old else ChangeType.INSERT,
            new=row.to_change_payload(),
            old=old
        )
        return row

    async def list_all(self) -> List[SyncMetadata]:
        """All metadata rows ordered by dataset name"""
        result = await self.db.execute(
            select(SyncMetadata).order_by(SyncMetadata.dataset_name)
        )
        return list(result.scalars().all())
