"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class, shared column types and enums
    dataset_record: Content-addressed upstream records, one logical store per dataset
    sync_metadata: Per-dataset sync health
    association: Cross-reference links between two dataset stores

Usage:
    from models import DatasetRecord, SyncMetadata, RecordAssociation
    from models.base import SyncStatus

Relationships:
    - SyncMetadata.dataset_name == DatasetRecord.dataset_name (one-to-many, by name)
    - RecordAssociation references DatasetRecord.record_id on both sides (by value)
"""

from models.base import Base, SyncStatus, UpsertOutcome
from models.dataset_record import DatasetRecord
from models.sync_metadata import SyncMetadata
from models.association import RecordAssociation

__all__ = [
    "Base",
    "SyncStatus",
    "UpsertOutcome",
    "DatasetRecord",
    "SyncMetadata",
    "RecordAssociation",
]
