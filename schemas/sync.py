"""
Pydantic schemas for upstream pages and sync/link reports
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime


class UpstreamPage(BaseModel):
    """
    One page of an open-data API response.

    The upstream schema is loose: counters arrive as numbers or numeric
    strings, extra keys (title, field list, version, ...) come and go, and
    records may be missing altogether. Anything unusable degrades to None
    or an empty record list.
    """
    records: List[Any] = Field(default_factory=list)
    total: Optional[int] = None
    count: Optional[int] = None
    limit: Optional[int] = None
    offset: Optional[int] = None

    @validator("records", pre=True)
    def coerce_records(cls, v):
        if isinstance(v, list):
            return v
        return []

    @validator("total", "count", "limit", "offset", pre=True)
    def coerce_counter(cls, v):
        if v is None or v == "":
            return None
        try:
            return int(v)
        except (TypeError, ValueError):
            return None

    class Config:
        extra = "allow"


# ============================================================================
# Sync Reports
# ============================================================================

class DatasetSyncResult(BaseModel):
    """Outcome of one dataset within a sync run"""
    dataset: str = Field(..., description="Target store name")
    dataset_id: int = Field(..., alias="datasetId")
    success: bool
    records: int = Field(0, ge=0, description="Records in the fetched page")
    inserted: Optional[int] = None
    skipped: Optional[int] = None
    error: Optional[str] = None
    message: Optional[str] = None

    class Config:
        populate_by_name = True


class LinkRuleResult(BaseModel):
    """Outcome of one linker rule"""
    left_store: str = Field(..., alias="leftStore")
    right_store: str = Field(..., alias="rightStore")
    examined: int = 0
    matched: int = 0
    inserted: int = 0

    class Config:
        populate_by_name = True


class LinkReport(BaseModel):
    success: bool = True
    rules: List[LinkRuleResult] = Field(default_factory=list)
    total_matched: int = Field(0, alias="totalMatched")
    total_inserted: int = Field(0, alias="totalInserted")
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True


class SyncReport(BaseModel):
    """
    Aggregate result of sync_all / sync_one.

    total_records only counts datasets that synced successfully.
    """
    success: bool = True
    results: List[DatasetSyncResult] = Field(default_factory=list)
    total_records: int = Field(0, alias="totalRecords")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    links: Optional[LinkReport] = None

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "success": True,
                "results": [
                    {
                        "dataset": "pm_ajay_dataset_1",
                        "datasetId": 1,
                        "success": True,
                        "records": 250,
                        "inserted": 12,
                        "skipped": 238
                    },
                    {
                        "dataset": "pm_ajay_dataset_2",
                        "datasetId": 2,
                        "success": False,
                        "records": 0,
                        "error": "Upstream returned HTTP 503 after 3 attempts"
                    }
                ],
                "totalRecords": 250,
                "timestamp": "2024-01-15T10:30:00Z"
            }
        }

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
