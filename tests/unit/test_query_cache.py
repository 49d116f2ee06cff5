import asyncio

import pytest

from realtime.cache import QueryCache
from realtime.feed import ChangeEvent, ChangeType


def test_invalidate_by_prefix():
    cache = QueryCache()
    cache.set(("dataset", "courses", "records", 100, 0), [1])
    cache.set(("dataset", "courses", "count"), 1)
    cache.set(("dataset", "colleges", "count"), 2)

    assert cache.invalidate(("dataset", "courses")) == 2
    assert ("dataset", "colleges", "count") in cache
    assert cache.get(("dataset", "courses", "count")) is None
    assert cache.invalidations[("dataset", "courses")] == 1


@pytest.mark.asyncio
async def test_get_or_load_caches_result():
    cache = QueryCache()
    calls = []

    async def loader():
        calls.append(1)
        return "value"

    assert await cache.get_or_load(("sync-metadata",), loader) == "value"
    assert await cache.get_or_load(("sync-metadata",), loader) == "value"
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_bound_cache_reloads_after_change(feed):
    cache = QueryCache()
    version = {"n": 0}

    async def loader():
        version["n"] += 1
        return version["n"]

    unsubscribe = cache.bind(feed, "sync_metadata", [("sync-metadata",)])

    assert await cache.get_or_load(("sync-metadata",), loader) == 1
    feed.publish(ChangeEvent(resource="sync_metadata", event_type=ChangeType.UPDATE, new={}))
    assert await cache.get_or_load(("sync-metadata",), loader) == 2

    unsubscribe()
    feed.publish(ChangeEvent(resource="sync_metadata", event_type=ChangeType.UPDATE, new={}))
    assert await cache.get_or_load(("sync-metadata",), loader) == 2


def test_unrelated_resource_keeps_cache(feed):
    cache = QueryCache()
    cache.set(("dataset", "courses", "count"), 5)
    cache.bind(feed, "courses", [("dataset", "courses")])

    feed.publish(ChangeEvent(resource="colleges", event_type=ChangeType.INSERT, new={}))

    assert cache.get(("dataset", "courses", "count")) == 5


def test_clear():
    cache = QueryCache()
    cache.set(("a",), 1)
    cache.clear()
    assert ("a",) not in cache


@pytest.mark.asyncio
async def test_change_during_load_is_not_cached(feed):
    cache = QueryCache()
    cache.bind(feed, "sync_metadata", [("sync-metadata",)])
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_loader():
        started.set()
        await release.wait()
        return "rows read before the commit"

    async def fresh_loader():
        return "fresh rows"

    load = asyncio.create_task(cache.get_or_load(("sync-metadata",), slow_loader))
    await started.wait()
    feed.publish(ChangeEvent(resource="sync_metadata", event_type=ChangeType.UPDATE, new={}))
    release.set()

    assert await load == "rows read before the commit"
    assert ("sync-metadata",) not in cache
    assert await cache.get_or_load(("sync-metadata",), fresh_loader) == "fresh rows"


@pytest.mark.asyncio
async def test_unrelated_invalidation_during_load_still_caches():
    cache = QueryCache()
    release = asyncio.Event()

    async def slow_loader():
        await release.wait()
        return 7

    load = asyncio.create_task(cache.get_or_load(("dataset", "courses", "count"), slow_loader))
    await asyncio.sleep(0)
    cache.invalidate(("dataset", "colleges"))
    release.set()

    assert await load == 7
    assert cache.get(("dataset", "courses", "count")) == 7


@pytest.mark.asyncio
async def test_clear_during_load_is_not_cached():
    cache = QueryCache()
    release = asyncio.Event()

    async def slow_loader():
        await release.wait()
        return "old"

    load = asyncio.create_task(cache.get_or_load(("sync-metadata",), slow_loader))
    await asyncio.sleep(0)
    cache.clear()
    release.set()

    assert await load == "old"
    assert ("sync-metadata",) not in cache
