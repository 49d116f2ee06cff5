"""
FastAPI application initialization
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from api.routes import health, sync, datasets, changes
from api.dependencies import get_registry
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.database import async_session_maker
from core.exceptions import DatasetValidationError, SyncException
from core.logging import setup_logging
from ingestion.metadata import SyncMetadataTracker, METADATA_RESOURCE
from ingestion.registry import DatasetRegistry
from ingestion.scheduler import SyncScheduler
from realtime.cache import QueryCache
from realtime.feed import ChangeFeedRegistry
from api.routes.sync import METADATA_QUERY_KEY
import logging

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="GovData Sync API",
    description="Open-data dataset synchronization and change propagation",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Permissive CORS: the sync trigger is called from the admin front end
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Client-Info", "Apikey"],
)

# Process-wide change feed and the query cache it invalidates
app.state.change_feed = ChangeFeedRegistry()
app.state.query_cache = QueryCache()
app.state.cache_bindings = []


def bind_query_cache(cache: QueryCache, feed: ChangeFeedRegistry, registry: DatasetRegistry) -> list:
    """Invalidate cached reads whenever the underlying resource changes"""
    bindings = [cache.bind(feed, METADATA_RESOURCE, [METADATA_QUERY_KEY])]
    for descriptor in registry:
        bindings.append(cache.bind(feed, descriptor.store, [("dataset", descriptor.store)]))
    return bindings


# Initialize Scheduler
scheduler = SyncScheduler(feed=app.state.change_feed)


# Include routers
app.include_router(health.router)
app.include_router(sync.router)
app.include_router(datasets.router)
app.include_router(changes.router)


@app.exception_handler(DatasetValidationError)
async def validation_error_handler(request: Request, exc: DatasetValidationError):
    return JSONResponse(status_code=400, content={"success": False, "error": exc.message})


@app.exception_handler(SyncException)
async def sync_error_handler(request: Request, exc: SyncException):
    logger.error(f"Unhandled sync error: {exc}")
    return JSONResponse(status_code=500, content={"success": False, "error": exc.message})


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting GovData Sync API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    registry = get_registry()
    app.state.cache_bindings = bind_query_cache(app.state.query_cache, app.state.change_feed, registry)

    try:
        async with async_session_maker() as session:
            await SyncMetadataTracker(session).ensure_rows(registry)
    except (SyncException, OSError) as e:
        logger.error(f"Could not seed sync metadata: {e}")

    if settings.SCHEDULER_ENABLED:
        scheduler.registry = registry
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down GovData Sync API")
    if settings.SCHEDULER_ENABLED:
        scheduler.stop()
    app.state.change_feed.unsubscribe_all()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "GovData Sync API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "sync": "/sync",
            "metadata": "/sync/metadata",
            "links": "/sync/links",
            "datasets": "/datasets",
            "changes": "/changes/{resource}"
        }
    }
