"""
Dataset store: content-addressed persistence of upstream records
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import dialect_name
from core.exceptions import UpsertError, LoadError
from models.base import UpsertOutcome
from models.dataset_record import DatasetRecord
from realtime.feed import ChangeFeedRegistry, ChangeType, emit
import logging

logger = logging.getLogger(__name__)

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def dialect_insert(db_session: AsyncSession):
    """INSERT construct with ON CONFLICT support for the session's dialect"""
    dialect = dialect_name(db_session)
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise LoadError(
            "Unsupported database dialect for upserts",
            context={"dialect": dialect}
        )
    return insert


class DatasetStore:
    """
    Write and read dataset records with idempotent upserts.

    Ensures:
    - A payload already stored for a dataset (same hash) is never inserted twice
    - A changed payload is appended as a new row; earlier versions are kept
    - Each record is committed on its own, so one bad record cannot take
      the rest of the page down with it
    """

    def __init__(self, db_session: AsyncSession, feed: Optional[ChangeFeedRegistry] = None):
        self.db = db_session
        self.feed = feed

    def _insert_statement(self, values: Dict[str, Any]):
        insert = dialect_insert(self.db)
        # INSERT ... ON CONFLICT (dataset_name, record_hash) DO NOTHING
        return insert(DatasetRecord).values(**values).on_conflict_do_nothing(
            index_elements=["dataset_name", "record_hash"]
        )

    async def upsert(
        self,
        dataset: str,
        record_id: str,
        payload: Dict[str, Any],
        record_hash: str
    ) -> UpsertOutcome:
        """
        Insert one record unless its hash is already stored for this dataset.

        Returns:
            UpsertOutcome.INSERTED or UpsertOutcome.SKIPPED

        Raises:
            UpsertError: The database rejected the write (already rolled back)
        """
        now = datetime.utcnow()
        values = {
            "dataset_name": dataset,
            "record_id": record_id,
            "payload": payload,
            "record_hash": record_hash,
            "synced_at": now,
            "created_at": now,
        }

        try:
            result = await self.db.execute(self._insert_statement(values))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise UpsertError(
                "Failed to upsert dataset record",
                context={
                    "dataset": dataset,
                    "record_id": record_id,
                    "record_hash": record_hash
                },
                original_exception=e
            )

        if result.rowcount == 0:
            return UpsertOutcome.SKIPPED

        emit(self.feed, dataset, ChangeType.INSERT, new=DatasetRecord(**values).to_change_payload())
        return UpsertOutcome.INSERTED

    async def count_records(self, dataset: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(DatasetRecord).where(
                DatasetRecord.dataset_name == dataset
            )
        )
        return result.scalar() or 0

    async def list_records(self, dataset: str, limit: int = 100, offset: int = 0) -> List[DatasetRecord]:
        """Stored rows of a dataset, newest first"""
        result = await self.db.execute(
            select(DatasetRecord)
            .where(DatasetRecord.dataset_name == dataset)
            .order_by(DatasetRecord.created_at.desc(), DatasetRecord.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def latest_records(self, dataset: str) -> List[DatasetRecord]:
        """Newest stored version of every record_id in a dataset"""
        result = await self.db.execute(
            select(DatasetRecord)
            .where(DatasetRecord.dataset_name == dataset)
            .order_by(DatasetRecord.created_at.desc(), DatasetRecord.id.desc())
        )

        latest: Dict[str, DatasetRecord] = {}
        for record in result.scalars().all():
            latest.setdefault(record.record_id, record)
        return list(latest.values())
