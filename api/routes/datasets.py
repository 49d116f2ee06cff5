"""
Read access to the registry and the dataset stores
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from api.dependencies import get_db, get_query_cache, get_registry
from ingestion.registry import DatasetRegistry
from ingestion.store import DatasetStore
from realtime.cache import QueryCache
from schemas.api import (
    DatasetCountResponse,
    DatasetInfo,
    DatasetRecordResponse,
    DatasetRecordsResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Datasets"])


@router.get("/datasets", response_model=List[DatasetInfo])
async def list_datasets(registry: DatasetRegistry = Depends(get_registry)):
    return [
        DatasetInfo(id=d.id, store=d.store, resource_id=d.resource_id, title=d.title)
        for d in registry
    ]


@router.get("/datasets/{dataset_id}/records", response_model=DatasetRecordsResponse)
async def get_dataset_records(
    dataset_id: int,
    limit: int = Query(100, ge=1, le=1000, description="Records per page"),
    offset: int = Query(0, ge=0, description="Records to skip"),
    db: AsyncSession = Depends(get_db),
    registry: DatasetRegistry = Depends(get_registry),
    cache: QueryCache = Depends(get_query_cache)
):
    """Stored records of one dataset, newest first"""
    descriptor = registry.get(dataset_id)
    store = DatasetStore(db)

    async def load():
        records = await store.list_records(descriptor.store, limit=limit, offset=offset)
        return DatasetRecordsResponse(
            dataset=descriptor.store,
            dataset_id=descriptor.id,
            limit=limit,
            offset=offset,
            total=await store.count_records(descriptor.store),
            records=[DatasetRecordResponse.model_validate(r) for r in records]
        )

    return await cache.get_or_load(("dataset", descriptor.store, "records", limit, offset), load)


@router.get("/datasets/{dataset_id}/count", response_model=DatasetCountResponse)
async def get_dataset_count(
    dataset_id: int,
    db: AsyncSession = Depends(get_db),
    registry: DatasetRegistry = Depends(get_registry),
    cache: QueryCache = Depends(get_query_cache)
):
    descriptor = registry.get(dataset_id)

    async def load():
        return DatasetCountResponse(
            dataset=descriptor.store,
            dataset_id=descriptor.id,
            count=await DatasetStore(db).count_records(descriptor.store)
        )

    return await cache.get_or_load(("dataset", descriptor.store, "count"), load)
