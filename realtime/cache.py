"""
Query result cache invalidated by the change feed.

Cached reads (sync metadata listings, dataset pages, counts) are stored
under tuple keys such as ("sync-metadata",) or ("dataset", 3, 100, 0).
Invalidating a key drops every entry whose key starts with it, so
("dataset", 3) clears all cached pages of dataset 3.
"""

import logging
import threading
from typing import Any, Awaitable, Callable, Dict, Hashable, Iterable, Optional, Tuple

from realtime.feed import ChangeEvent, ChangeFeedRegistry

logger = logging.getLogger(__name__)

QueryKey = Tuple[Hashable, ...]


class QueryCache:
    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[QueryKey, Any] = {}
        # Bumped by invalidate(); a load that straddles a bump is not stored
        self._generations: Dict[QueryKey, int] = {}
        self.invalidations: Dict[QueryKey, int] = {}

    def get(self, key: QueryKey, default: Any = None) -> Any:
        with self._lock:
            return self._entries.get(tuple(key), default)

    def set(self, key: QueryKey, value: Any) -> None:
        with self._lock:
            self._entries[tuple(key)] = value

    def __contains__(self, key: QueryKey) -> bool:
        with self._lock:
            return tuple(key) in self._entries

    async def get_or_load(self, key: QueryKey, loader: Callable[[], Awaitable[Any]]) -> Any:
        key = tuple(key)
        with self._lock:
            if key in self._entries:
                return self._entries[key]
            generation = self._generations.setdefault(key, 0)

        value = await loader()

        with self._lock:
            if self._generations.get(key, 0) == generation:
                self._entries[key] = value
            else:
                logger.debug(f"Not caching {key}: invalidated while loading")
        return value

    def invalidate(self, prefix: QueryKey) -> int:
        """Drop every entry whose key starts with prefix; returns how many"""
        prefix = tuple(prefix)
        with self._lock:
            stale = [key for key in self._entries if key[:len(prefix)] == prefix]
            for key in stale:
                del self._entries[key]
            for key in self._generations:
                if key[:len(prefix)] == prefix:
                    self._generations[key] += 1
            self.invalidations[prefix] = self.invalidations.get(prefix, 0) + 1

        if stale:
            logger.debug(f"Invalidated {len(stale)} cached queries under {prefix}")
        return len(stale)

    def bind(
        self,
        feed: ChangeFeedRegistry,
        resource: str,
        query_keys: Iterable[QueryKey],
        filter: Optional[str] = None
    ) -> Callable[[], None]:
        """
        Invalidate query_keys whenever resource changes.

        Returns the change feed unsubscribe function; the caller owns it.
        """
        keys = [tuple(k) for k in query_keys]

        def on_change(event: ChangeEvent) -> None:
            for key in keys:
                self.invalidate(key)

        return feed.subscribe(resource, on_change, filter=filter)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            for key in self._generations:
                self._generations[key] += 1
