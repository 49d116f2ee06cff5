from sqlalchemy import Column, Integer, String, Enum, DateTime, Text
from datetime import datetime
from models.base import Base, SyncStatus


class SyncMetadata(Base):
    """
    Sync health per dataset.

    Design:
    - One row per dataset name, seeded as never_run
    - Written once at the end of every sync attempt, success or error
    - No in-progress status: a crash mid-sync leaves the previous
      terminal status visible
    """
    __tablename__ = "sync_metadata"

    id = Column(Integer, primary_key=True, autoincrement=True)

    dataset_name = Column(String(100), nullable=False, unique=True, index=True)
    resource_id = Column(String(100), nullable=True)

    last_sync_at = Column(DateTime, nullable=True)
    last_sync_status = Column(
        Enum(SyncStatus, name="sync_status", values_callable=lambda e: [m.value for m in e]),
        default=SyncStatus.NEVER_RUN,
        nullable=False
    )
    last_sync_error = Column(Text, nullable=True)
    total_records = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_change_payload(self) -> dict:
        return {
            "dataset_name": self.dataset_name,
            "resource_id": self.resource_id,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "last_sync_status": SyncStatus(self.last_sync_status).value,
            "last_sync_error": self.last_sync_error,
            "total_records": self.total_records,
        }
