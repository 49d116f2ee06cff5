"""
Server-sent events bridge from the change feed to HTTP clients.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

from realtime.feed import ChangeEvent, ChangeFeedRegistry

logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 15.0
MAX_PENDING_EVENTS = 1000


def format_sse(event: ChangeEvent) -> str:
    return f"event: {event.event_type.value}\ndata: {json.dumps(event.to_dict(), default=str)}\n\n"


async def change_stream(
    feed: ChangeFeedRegistry,
    resource: str,
    is_disconnected: Callable[[], Awaitable[bool]],
    filter: Optional[str] = None,
    heartbeat: float = HEARTBEAT_SECONDS,
    max_pending: int = MAX_PENDING_EVENTS
) -> AsyncIterator[str]:
    """
    Yield SSE frames for every change on resource until the client goes away.

    The subscription is released when the generator finishes or is closed.
    A client that falls more than max_pending events behind loses the oldest
    ones.
    """
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[ChangeEvent]" = asyncio.Queue(maxsize=max_pending)

    def offer(event: ChangeEvent) -> None:
        if queue.full():
            queue.get_nowait()
            logger.warning(f"SSE client on {resource} is lagging; dropped oldest event")
        queue.put_nowait(event)

    # Producers may publish from worker threads
    unsubscribe = feed.subscribe(
        resource,
        lambda event: loop.call_soon_threadsafe(offer, event),
        filter=filter,
    )
    logger.info(f"SSE client attached to {resource} ({unsubscribe.channel})")

    try:
        yield f"event: subscribed\ndata: {json.dumps({'channel': unsubscribe.channel})}\n\n"
        while not await is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield format_sse(event)
    finally:
        unsubscribe()
        logger.info(f"SSE client detached from {resource}")
