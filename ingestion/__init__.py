"""
Dataset synchronization pipeline.

Modules:
    fetcher: Retrying HTTP fetcher for the open-data API
    hashing: Canonical content hashing for idempotent upserts
    store: Content-addressed dataset store
    metadata: Per-dataset sync health tracking
    registry: Static dataset descriptors and link rules (datasets.json)
    orchestrator: Sync all / sync one with per-dataset failure isolation
    linker: Best-effort cross-reference linking between two stores
    scheduler: APScheduler integration for periodic syncs

Architecture:
    For every dataset, in registry order:

    1. Fetch - one page from the upstream API, retried with linear backoff
    2. Hash - canonical SHA-256 of each record
    3. Upsert - insert unless the hash is already stored (committed per record)
    4. Metadata - one terminal success/error row update

    A dataset failing at any step is recorded as an error and the run moves
    on to the next dataset.

Usage:
    from ingestion.orchestrator import SyncOrchestrator
    from ingestion.registry import load_registry

    orchestrator = SyncOrchestrator(session, load_registry())
    report = await orchestrator.sync_all()
    print(f"Synced {report.total_records} records")
"""

__all__ = [
    "RetryingFetcher",
    "DatasetStore",
    "SyncMetadataTracker",
    "SyncOrchestrator",
    "CrossReferenceLinker",
    "DatasetRegistry",
    "load_registry",
    "content_hash",
]
