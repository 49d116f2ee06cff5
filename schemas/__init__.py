"""
Pydantic schemas for data validation and serialization.

Schemas:
    sync: Upstream page coercion, per-dataset sync results and reports
    api: API endpoint response models (metadata, dataset reads, health)

Usage:
    from schemas.sync import SyncReport, UpstreamPage
    from schemas.api import SyncMetadataResponse, HealthCheckResponse

Example:
    # Counters arrive as numbers or numeric strings
    page = UpstreamPage(records=[{"_id": "1"}], total="250")
    assert page.total == 250

    # Reports serialize with the wire field names
    report = SyncReport(total_records=250)
    assert report.to_response()["totalRecords"] == 250
"""

__all__ = [
    "UpstreamPage",
    "DatasetSyncResult",
    "LinkReport",
    "SyncReport",
    "SyncMetadataResponse",
    "DatasetRecordsResponse",
    "HealthCheckResponse",
]
