"""
Pydantic schemas for API request/response models
"""

from pydantic import AliasChoices, BaseModel, Field, validator
from typing import Optional, List, Any
from datetime import datetime
from models.base import SyncStatus


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    request_id: Optional[str] = None


# ============================================================================
# Sync Metadata Schemas
# ============================================================================

class SyncMetadataResponse(BaseModel):
    """Sync health of one dataset"""
    dataset_name: str
    resource_id: Optional[str] = None
    last_sync_at: Optional[datetime] = None
    last_sync_status: SyncStatus
    last_sync_error: Optional[str] = None
    total_records: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True


# ============================================================================
# Dataset Schemas
# ============================================================================

class DatasetInfo(BaseModel):
    """Registry entry as exposed to callers (no credentials)"""
    id: int
    store: str
    resource_id: str
    title: Optional[str] = None

    class Config:
        from_attributes = True


class DatasetRecordResponse(BaseModel):
    id: int
    record_id: str
    data: Any = Field(..., validation_alias=AliasChoices("payload", "data"))
    record_hash: str
    synced_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class DatasetRecordsResponse(BaseModel):
    dataset: str
    dataset_id: int = Field(..., alias="datasetId")
    limit: int
    offset: int
    total: int
    records: List[DatasetRecordResponse] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class DatasetCountResponse(BaseModel):
    dataset: str
    dataset_id: int = Field(..., alias="datasetId")
    count: int

    class Config:
        populate_by_name = True


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    database_connected: bool
    total_datasets: int = 0
    successful_datasets: int = 0
    failed_datasets: int = 0
    never_synced_datasets: int = 0
    datasets: List[SyncMetadataResponse] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")

    @validator("status", pre=True, always=True)
    def determine_status(cls, v, values):
        """Determine overall health status"""
        if not values.get("database_connected", False):
            return "unhealthy"

        failed = values.get("failed_datasets", 0)
        synced = failed + values.get("successful_datasets", 0)

        if synced == 0 or failed == 0:
            return "healthy"
        elif failed < synced:
            return "degraded"
        else:
            return "unhealthy"

    class Config:
        json_schema_extra = {
            "example": {
                "status": "degraded",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "total_datasets": 9,
                "successful_datasets": 8,
                "failed_datasets": 1,
                "never_synced_datasets": 0,
                "datasets": [
                    {
                        "dataset_name": "pm_ajay_dataset_1",
                        "last_sync_at": "2024-01-15T10:00:00Z",
                        "last_sync_status": "success",
                        "total_records": 250
                    }
                ]
            }
        }
