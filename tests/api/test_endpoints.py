"""
API endpoint tests
"""

import httpx
import pytest
import pytest_asyncio

from api.dependencies import get_db, get_fetcher, get_orchestrator, get_registry
from api.main import app, bind_query_cache
from realtime.cache import QueryCache
from realtime.feed import ChangeFeedRegistry


@pytest_asyncio.fixture
async def client(db_session, registry, fetcher):
    """Create test client with database, registry and upstream overrides"""

    async def override_get_db():
        yield db_session

    app.state.change_feed = ChangeFeedRegistry()
    app.state.query_cache = QueryCache()
    bindings = bind_query_cache(app.state.query_cache, app.state.change_feed, registry)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_fetcher] = lambda: fetcher

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    for unsubscribe in bindings:
        unsubscribe()
    app.dependency_overrides.clear()


def seed_upstream(upstream, failing=()):
    for n in range(1, 16):
        upstream.records(f"res-{n}", [{"_id": f"{n}-{i}"} for i in range(2)])
    for n in failing:
        upstream.set(f"res-{n}", 503)


@pytest.mark.asyncio
class TestSyncEndpoint:
    async def test_sync_all(self, client, upstream):
        seed_upstream(upstream, failing=[3])

        response = await client.post("/sync")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert len(body["results"]) == 15
        assert body["results"][2]["success"] is False
        assert body["totalRecords"] == 28
        assert response.headers["access-control-allow-origin"] == "*"

    async def test_sync_one(self, client, upstream):
        seed_upstream(upstream)

        response = await client.post("/sync", params={"dataset": "4"})

        assert response.status_code == 200
        body = response.json()
        assert [r["datasetId"] for r in body["results"]] == [4]
        assert body["totalRecords"] == 2
        assert len(upstream.calls) == 1

    @pytest.mark.parametrize("dataset", ["0", "16", "abc"])
    async def test_invalid_dataset_returns_400(self, client, upstream, dataset):
        response = await client.post("/sync", params={"dataset": dataset}, headers={"X-Request-ID": "req_test"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]
        assert body["request_id"] == "req_test"
        assert upstream.calls == []

    async def test_preflight(self, client):
        response = await client.options("/sync")

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert "POST" in response.headers["access-control-allow-methods"]

    async def test_unexpected_failure_returns_500(self, client):
        class BrokenOrchestrator:
            async def sync_all(self):
                raise RuntimeError("database unavailable")

        app.dependency_overrides[get_orchestrator] = lambda: BrokenOrchestrator()

        response = await client.post("/sync")

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "database unavailable",
            "request_id": response.headers["x-request-id"],
        }

    async def test_request_id_generated(self, client, upstream):
        seed_upstream(upstream)

        response = await client.post("/sync", params={"dataset": "1"})

        assert response.headers["x-request-id"].startswith("req_")
        assert "x-api-latency-ms" in response.headers


@pytest.mark.asyncio
class TestMetadataEndpoint:
    async def test_metadata_ordered_by_name(self, client, upstream):
        seed_upstream(upstream)
        await client.post("/sync")

        response = await client.get("/sync/metadata")

        assert response.status_code == 200
        names = [row["dataset_name"] for row in response.json()]
        assert names == sorted(names)
        assert len(names) == 15
        assert all(row["last_sync_status"] == "success" for row in response.json())

    async def test_cached_metadata_refreshed_after_sync(self, client, upstream):
        seed_upstream(upstream, failing=[1])
        await client.post("/sync", params={"dataset": "1"})

        before = {row["dataset_name"]: row for row in (await client.get("/sync/metadata")).json()}
        assert before["pm_ajay_dataset_1"]["last_sync_status"] == "error"

        upstream.records("res-1", [{"_id": "x"}])
        await client.post("/sync", params={"dataset": "1"})

        after = {row["dataset_name"]: row for row in (await client.get("/sync/metadata")).json()}
        assert after["pm_ajay_dataset_1"]["last_sync_status"] == "success"
        assert after["pm_ajay_dataset_1"]["total_records"] == 1


@pytest.mark.asyncio
class TestDatasetEndpoints:
    async def test_list_datasets_hides_keys(self, client):
        response = await client.get("/datasets")

        assert response.status_code == 200
        assert len(response.json()) == 15
        assert "api_key" not in response.json()[0]

    async def test_records_and_count(self, client, upstream):
        seed_upstream(upstream)
        await client.post("/sync", params={"dataset": "2"})

        records = await client.get("/datasets/2/records", params={"limit": 1})
        count = await client.get("/datasets/2/count")

        assert records.status_code == 200
        body = records.json()
        assert body["datasetId"] == 2
        assert body["total"] == 2
        assert len(body["records"]) == 1
        assert body["records"][0]["data"]["_id"].startswith("2-")
        assert count.json() == {"dataset": "pm_ajay_dataset_2", "datasetId": 2, "count": 2}

    async def test_cached_count_refreshed_after_insert(self, client, upstream):
        assert (await client.get("/datasets/5/count")).json()["count"] == 0

        seed_upstream(upstream)
        await client.post("/sync", params={"dataset": "5"})

        assert (await client.get("/datasets/5/count")).json()["count"] == 2

    async def test_unknown_dataset_returns_400(self, client):
        response = await client.get("/datasets/16/count")

        assert response.status_code == 400
        assert response.json()["success"] is False


@pytest.mark.asyncio
class TestHealthAndChanges:
    async def test_health(self, client, upstream):
        seed_upstream(upstream, failing=[2])
        await client.post("/sync")

        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["database_connected"] is True
        assert body["total_datasets"] == 15
        assert body["failed_datasets"] == 1
        assert body["successful_datasets"] == 14
        assert body["status"] == "degraded"

    async def test_health_without_metadata(self, client):
        body = (await client.get("/health")).json()

        assert body["status"] == "healthy"
        assert body["total_datasets"] == 0

    async def test_invalid_change_filter_returns_400(self, client):
        response = await client.get("/changes/courses", params={"filter": "bogus"})

        assert response.status_code == 400

    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["endpoints"]["sync"] == "/sync"
