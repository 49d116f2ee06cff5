"""
Pytest configuration and fixtures
"""

import os
from typing import AsyncGenerator, Dict, List

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import create_engine, create_session_maker
from ingestion.fetcher import RetryingFetcher
from ingestion.registry import DatasetDescriptor, DatasetRegistry, LinkRule
from models.base import Base
from realtime.feed import ChangeFeedRegistry

# SQLite in memory by default; point at PostgreSQL with TEST_DATABASE_URL
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")

UPSTREAM_BASE_URL = "https://api.test/resource"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine"""
    engine = create_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with create_session_maker(test_engine)() as session:
        yield session
        await session.rollback()


class FakeUpstream:
    """
    Stand-in for the open-data API behind an httpx.MockTransport.

    Responses are queued per resource id; each entry is a JSON body (dict),
    an HTTP status (int) or an exception instance. The last entry repeats.
    """

    def __init__(self):
        self.responses: Dict[str, List] = {}
        self.calls: List[httpx.Request] = []

    def set(self, resource_id: str, *responses):
        self.responses[resource_id] = list(responses)

    def records(self, resource_id: str, records: list):
        self.set(resource_id, {"records": records, "total": len(records), "count": len(records), "limit": 1000, "offset": 0})

    def calls_for(self, resource_id: str) -> List[httpx.Request]:
        return [c for c in self.calls if c.url.path.endswith(f"/{resource_id}")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        resource_id = request.url.path.rsplit("/", 1)[-1]
        queue = self.responses.get(resource_id)
        if not queue:
            return httpx.Response(404, json={"error": "unknown resource"})

        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, int):
            return httpx.Response(response, text="upstream error")
        if isinstance(response, str):
            return httpx.Response(200, text=response)
        return httpx.Response(200, json=response)


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def sleeps():
    return RecordingSleep()


@pytest_asyncio.fixture
async def fetcher(upstream, sleeps):
    """RetryingFetcher wired to the fake upstream, with sleeps recorded instead of taken"""
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as client:
        yield RetryingFetcher(
            client=client,
            base_url=UPSTREAM_BASE_URL,
            max_retries=3,
            retry_delay=1.0,
            sleep=sleeps,
        )


@pytest.fixture
def feed():
    return ChangeFeedRegistry()


def make_descriptor(n: int, **overrides) -> DatasetDescriptor:
    values = {
        "id": n,
        "resource_id": f"res-{n}",
        "store": f"pm_ajay_dataset_{n}",
        "api_key": "test-key",
        "id_fields": ["_id", "id"],
    }
    values.update(overrides)
    return DatasetDescriptor(**values)


@pytest.fixture
def registry():
    """Fifteen PM-AJAY style datasets, ids 1..15"""
    return DatasetRegistry([make_descriptor(n) for n in range(1, 16)])


@pytest.fixture
def link_registry():
    """Courses and colleges with one link rule"""
    return DatasetRegistry(
        [
            make_descriptor(1, resource_id="res-courses", store="courses", id_fields=["course_id", "id"],
                            fallback_id="hash", store_prefix="course"),
            make_descriptor(2, resource_id="res-colleges", store="colleges", id_fields=["college_id", "id"],
                            fallback_id="hash", store_prefix="college"),
        ],
        links=[LinkRule(
            left_store="courses",
            right_store="colleges",
            token_fields=["courses", "offered_courses"],
            left_name_fields=["course_name"],
        )]
    )
