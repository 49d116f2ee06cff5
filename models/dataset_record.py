from sqlalchemy import Column, String, DateTime, Index, UniqueConstraint
from datetime import datetime
from models.base import Base, BigIntPK, JSONType


class DatasetRecord(Base):
    """
    One upstream record in one dataset store.

    Purpose:
    - Content-addressed storage of raw upstream payloads
    - History of changed records (a changed payload is a new row)

    Design Decisions:
    - All stores share this table, partitioned by dataset_name
    - record_hash is the SHA-256 of the canonical payload; uniqueness on
      (dataset_name, record_hash) makes repeated syncs no-ops
    - record_id is the upstream id (or a synthesized fallback) and is NOT
      unique: every version of a record keeps the same record_id
    """
    __tablename__ = "dataset_records"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)

    dataset_name = Column(String(100), nullable=False, index=True)
    record_id = Column(String(255), nullable=False)

    payload = Column(JSONType, nullable=False)
    record_hash = Column(String(64), nullable=False)

    synced_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    __table_args__ = (
        UniqueConstraint("dataset_name", "record_hash", name="uq_dataset_record_hash"),
        Index("idx_dataset_record_identity", "dataset_name", "record_id", "created_at"),
    )

    def to_change_payload(self) -> dict:
        return {
            "dataset_name": self.dataset_name,
            "record_id": self.record_id,
            "record_hash": self.record_hash,
            "payload": self.payload,
            "synced_at": self.synced_at.isoformat() if self.synced_at else None,
        }
