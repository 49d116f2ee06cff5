"""
FastAPI dependencies shared by the routers
"""

from functools import lru_cache
from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from ingestion.fetcher import RetryingFetcher
from ingestion.orchestrator import SyncOrchestrator
from ingestion.registry import DatasetRegistry, load_registry
from realtime.cache import QueryCache
from realtime.feed import ChangeFeedRegistry


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


@lru_cache(maxsize=1)
def get_registry() -> DatasetRegistry:
    return load_registry()


def get_fetcher() -> RetryingFetcher:
    return RetryingFetcher()


def get_change_feed(request: Request) -> ChangeFeedRegistry:
    return request.app.state.change_feed


def get_query_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    registry: DatasetRegistry = Depends(get_registry),
    fetcher: RetryingFetcher = Depends(get_fetcher),
    feed: ChangeFeedRegistry = Depends(get_change_feed)
) -> SyncOrchestrator:
    return SyncOrchestrator(db, registry, fetcher=fetcher, feed=feed)
