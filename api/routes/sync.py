"""
Sync trigger and sync metadata endpoints
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from api.dependencies import get_db, get_orchestrator, get_query_cache
from core.exceptions import DatasetValidationError
from ingestion.metadata import SyncMetadataTracker
from ingestion.orchestrator import SyncOrchestrator
from realtime.cache import QueryCache
from schemas.api import ErrorResponse, SyncMetadataResponse
from schemas.sync import LinkReport, SyncReport

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Sync"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Client-Info, Apikey",
}

METADATA_QUERY_KEY = ("sync-metadata",)


def _error(status_code: int, message: str, request: Request) -> JSONResponse:
    body = ErrorResponse(error=message, request_id=getattr(request.state, "request_id", None))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=CORS_HEADERS)


@router.options("/sync")
async def sync_preflight():
    """CORS preflight, answered before anything else"""
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/sync", response_model=SyncReport, response_model_exclude_none=True)
async def trigger_sync(
    request: Request,
    dataset: Optional[str] = Query(None, description="Dataset number; omit to sync every dataset"),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """
    Trigger a sync.

    - No dataset parameter: sync every registered dataset
    - dataset=N: validate N and sync only that dataset

    Upstream failures are reported per dataset inside a 200 response.
    """
    request_id = getattr(request.state, "request_id", None)
    logger.info(f"[{request_id}] POST /sync dataset={dataset}")

    try:
        if dataset is None or dataset.strip() == "":
            report = await orchestrator.sync_all()
        else:
            report = await orchestrator.sync_one(dataset.strip())

    except DatasetValidationError as e:
        logger.warning(f"[{request_id}] Rejected sync request: {e.message}")
        return _error(400, e.message, request)

    except Exception as e:
        logger.exception(f"[{request_id}] Sync request failed")
        return _error(500, getattr(e, "message", None) or str(e), request)

    return JSONResponse(content=report.to_response(), headers=CORS_HEADERS)


@router.post("/sync/links", response_model=LinkReport)
async def trigger_link(
    request: Request,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """Run the cross-reference linker over the already synced stores"""
    try:
        report = await orchestrator.linker.link_all()
    except Exception as e:
        logger.exception("Link request failed")
        return _error(500, getattr(e, "message", None) or str(e), request)

    return JSONResponse(content=report.model_dump(mode="json", by_alias=True), headers=CORS_HEADERS)


@router.get("/sync/metadata", response_model=List[SyncMetadataResponse])
async def get_sync_metadata(
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache)
):
    """All sync metadata rows ordered by dataset name"""

    async def load():
        rows = await SyncMetadataTracker(db).list_all()
        return [SyncMetadataResponse.model_validate(row) for row in rows]

    return await cache.get_or_load(METADATA_QUERY_KEY, load)
