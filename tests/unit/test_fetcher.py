import httpx
import pytest

from core.exceptions import NetworkError, RetryableError, UpstreamHTTPError


@pytest.mark.asyncio
async def test_fetch_dataset_success(fetcher, registry, upstream, sleeps):
    upstream.records("res-1", [{"_id": "1", "state": "Bihar"}])

    page = await fetcher.fetch_dataset(registry.get(1))

    assert page.records == [{"_id": "1", "state": "Bihar"}]
    assert page.total == 1
    assert len(upstream.calls) == 1
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_fetch_dataset_sends_key_format_and_limit(fetcher, registry, upstream):
    upstream.records("res-1", [])

    await fetcher.fetch_dataset(registry.get(1), limit=50)

    request = upstream.calls[0]
    assert str(request.url).startswith("https://api.test/resource/res-1")
    assert request.url.params["api-key"] == "test-key"
    assert request.url.params["format"] == "json"
    assert request.url.params["limit"] == "50"
    assert "offset" not in request.url.params


@pytest.mark.asyncio
async def test_retries_with_linear_backoff_then_succeeds(fetcher, registry, upstream, sleeps):
    upstream.set("res-1", 503, 502, {"records": [{"_id": "1"}]})

    page = await fetcher.fetch_dataset(registry.get(1))

    assert len(page.records) == 1
    assert len(upstream.calls) == 3
    assert sleeps.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhausted_retries_raise_last_http_status(fetcher, registry, upstream, sleeps):
    upstream.set("res-1", 503)

    with pytest.raises(UpstreamHTTPError) as exc_info:
        await fetcher.fetch_dataset(registry.get(1))

    assert exc_info.value.status_code == 503
    assert exc_info.value.retry_count == 3
    assert isinstance(exc_info.value, RetryableError)
    assert len(upstream.calls) == 3
    # No sleep after the final attempt
    assert sleeps.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_transport_errors_raise_network_error(fetcher, registry, upstream):
    upstream.set("res-1", httpx.ConnectError("connection refused"))

    with pytest.raises(NetworkError) as exc_info:
        await fetcher.fetch_dataset(registry.get(1))

    assert isinstance(exc_info.value.original_exception, httpx.ConnectError)
    assert len(upstream.calls) == 3


@pytest.mark.asyncio
async def test_non_json_body_is_retried(fetcher, registry, upstream, sleeps):
    upstream.set("res-1", "<html>rate limited</html>", {"records": []})

    page = await fetcher.fetch_dataset(registry.get(1))

    assert page.records == []
    assert len(upstream.calls) == 2
    assert sleeps.delays == [1.0]


@pytest.mark.asyncio
async def test_malformed_records_degrade_to_empty_page(fetcher, registry, upstream):
    upstream.set("res-1", {"records": "not-a-list", "total": "12"})

    page = await fetcher.fetch_dataset(registry.get(1))

    assert page.records == []
    assert page.total == 12


@pytest.mark.asyncio
async def test_single_attempt_when_max_retries_is_one(registry, upstream, sleeps):
    from ingestion.fetcher import RetryingFetcher

    upstream.set("res-1", 500)
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as client:
        fetcher = RetryingFetcher(client=client, base_url="https://api.test/resource", max_retries=1, sleep=sleeps)
        with pytest.raises(UpstreamHTTPError):
            await fetcher.fetch_dataset(registry.get(1))

    assert len(upstream.calls) == 1
    assert sleeps.delays == []


def test_dataset_url_strips_trailing_slash():
    from ingestion.fetcher import RetryingFetcher

    fetcher = RetryingFetcher(base_url="https://api.test/resource/")
    assert fetcher.dataset_url("abc") == "https://api.test/resource/abc"
