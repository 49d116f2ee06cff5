"""
Retrying HTTP fetcher for the open-data API.

The upstream is slow, rate limited and occasionally returns HTML error pages,
so every kind of failure is treated as transient:
- httpx transport errors and timeouts
- any non-2xx status
- a body that is not JSON

Each failed attempt sleeps attempt_index * retry_delay seconds (linear
backoff: 1s, 2s, ...) before the next one. The last failure is raised.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from core.config import settings
from core.exceptions import NetworkError, UpstreamHTTPError
from schemas.sync import UpstreamPage

logger = logging.getLogger(__name__)


class RetryingFetcher:
    """
    Fetch JSON documents with bounded retries.

    Holds no per-request state, so one instance can serve concurrent fetches
    of different URLs. When no client is injected a short-lived
    httpx.AsyncClient is opened per call.

    Attributes:
        max_retries: Total attempts per fetch (default: settings.MAX_RETRIES)
        retry_delay: Base delay for the linear backoff in seconds
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.client = client
        self.base_url = (base_url or settings.DATA_GOV_BASE_URL).rstrip("/")
        self.max_retries = max(1, max_retries if max_retries is not None else settings.MAX_RETRIES)
        self.retry_delay = retry_delay if retry_delay is not None else settings.RETRY_BASE_DELAY
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self._sleep = sleep

    async def _get_json(self, client: httpx.AsyncClient, url: str, params: Dict[str, Any]) -> Any:
        response = await client.get(url, params=params, timeout=self.timeout)
        if not response.is_success:
            raise UpstreamHTTPError(
                f"Upstream returned HTTP {response.status_code}",
                status_code=response.status_code,
                context={"url": url, "response_body": response.text[:500]}
            )
        return response.json()

    async def _fetch_with_client(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: Dict[str, Any],
        label: str
    ) -> Any:
        last_exception: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                logger.debug(f"Request attempt {attempt}/{self.max_retries} for {label}")
                return await self._get_json(client, url, params)

            except (httpx.HTTPError, UpstreamHTTPError, ValueError) as e:
                last_exception = e
                logger.warning(f"Attempt {attempt}/{self.max_retries} for {label} failed: {e}")

                if attempt < self.max_retries:
                    await self._sleep(attempt * self.retry_delay)

        context = {"resource": label, "attempts": self.max_retries}
        if isinstance(last_exception, UpstreamHTTPError):
            raise UpstreamHTTPError(
                f"Upstream returned HTTP {last_exception.status_code} after {self.max_retries} attempts",
                status_code=last_exception.status_code,
                context=context,
                original_exception=last_exception,
                retry_count=self.max_retries
            )
        raise NetworkError(
            f"Request failed after {self.max_retries} attempts: {last_exception}",
            context=context,
            original_exception=last_exception,
            retry_count=self.max_retries
        )

    async def fetch(self, url: str, params: Optional[Dict[str, Any]] = None, label: Optional[str] = None) -> Any:
        """
        GET url and return the decoded JSON body.

        Raises:
            UpstreamHTTPError: Non-2xx status on the final attempt
            NetworkError: Transport or decode failure on the final attempt
        """
        params = params or {}
        label = label or url

        if self.client is not None:
            return await self._fetch_with_client(self.client, url, params, label)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._fetch_with_client(client, url, params, label)

    def dataset_url(self, resource_id: str) -> str:
        return f"{self.base_url}/{resource_id}"

    async def fetch_dataset(self, descriptor, limit: Optional[int] = None) -> UpstreamPage:
        """
        Fetch the first page of a dataset.

        Only the limit parameter is sent; datasets larger than the limit are
        truncated to their first page.
        """
        limit = limit or settings.SYNC_PAGE_LIMIT
        params = {
            "api-key": descriptor.api_key or "",
            "format": "json",
            "limit": limit,
        }

        data = await self.fetch(
            self.dataset_url(descriptor.resource_id),
            params=params,
            label=f"{descriptor.store} ({descriptor.resource_id})"
        )

        if not isinstance(data, dict):
            logger.warning(f"Unexpected payload type {type(data).__name__} for {descriptor.store}")
            return UpstreamPage()

        page = UpstreamPage(**data)
        if page.total is not None and page.total > len(page.records):
            logger.warning(
                f"{descriptor.store}: upstream reports {page.total} records, "
                f"only the first {len(page.records)} were fetched"
            )
        return page
