"""
Server-sent events stream of change events for one resource
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from typing import Optional
import logging

from api.dependencies import get_change_feed
from realtime.feed import ChangeFeedRegistry, InvalidFilterError, RowFilter
from realtime.stream import change_stream
from schemas.api import ErrorResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Changes"])


@router.get("/changes/{resource}")
async def stream_changes(
    resource: str,
    request: Request,
    filter: Optional[str] = Query(None, description="Row filter, e.g. last_sync_status=eq.error"),
    feed: ChangeFeedRegistry = Depends(get_change_feed)
):
    """
    Stream INSERT/UPDATE/DELETE events on a resource (a dataset store name,
    sync_metadata or record_associations). The subscription is released when
    the client disconnects.
    """
    if filter:
        try:
            RowFilter.parse(filter)
        except InvalidFilterError as e:
            return JSONResponse(status_code=400, content=ErrorResponse(error=str(e)).model_dump(exclude_none=True))

    return StreamingResponse(
        change_stream(feed, resource, request.is_disconnected, filter=filter),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
    )
