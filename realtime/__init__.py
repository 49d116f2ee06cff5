"""
Change propagation for synced data.

Modules:
    feed: ChangeFeedRegistry, ChangeEvent and row filters
    cache: QueryCache, invalidated by change events
    stream: Server-sent events bridge for HTTP clients

Usage:
    feed = ChangeFeedRegistry()
    unsubscribe = feed.subscribe("sync_metadata", on_change, filter="last_sync_status=eq.error")
    ...
    unsubscribe()
"""

from realtime.feed import ChangeEvent, ChangeFeedRegistry, ChangeType, InvalidFilterError, emit
from realtime.cache import QueryCache

__all__ = [
    "ChangeEvent",
    "ChangeFeedRegistry",
    "ChangeType",
    "InvalidFilterError",
    "QueryCache",
    "emit",
]
